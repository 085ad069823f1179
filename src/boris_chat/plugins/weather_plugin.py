import asyncio
import logging
import random

logger = logging.getLogger(__name__)

CONDITIONS = ["sunny", "partly cloudy", "cloudy", "rainy"]


class WeatherPlugin:
    """Plugin providing a simulated weather lookup."""

    def __init__(self, delay: float = 1.0, rng: random.Random = None):
        """Initialize weather plugin.

        Parameters
        ----------
        delay : float, optional
            Seconds to wait before answering, simulating an API call (default: 1.0)
        rng : random.Random, optional
            Random source for the simulated readings
        """
        self.delay = delay
        self.rng = rng or random.Random()

    async def weather(self, location: str) -> dict:
        """Get the current weather in a given location. Use this when the user asks about weather, temperature, or conditions.

        Args:
            location: The city and state, e.g. San Francisco, CA
        """
        logger.info(f"Weather lookup for: {location}")
        if self.delay:
            await asyncio.sleep(self.delay)

        return {
            "location": location,
            "temperature": 72 + self.rng.randint(-10, 10),
            "conditions": self.rng.choice(CONDITIONS),
            "humidity": self.rng.randint(40, 79),
            "windSpeed": self.rng.randint(5, 19),
            "unit": "fahrenheit",
        }

    def hook_provide_tools(self):
        return [self.weather]

    def hook_provide_tool_descriptions(self):
        return {
            "weather": {
                "workingDescription": "Checking the weather...",
                "completedDescription": "Weather retrieved",
                "errorDescription": "Weather lookup failed",
            }
        }
