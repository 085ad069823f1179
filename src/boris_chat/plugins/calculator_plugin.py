import logging
from typing import Literal

logger = logging.getLogger(__name__)


class CalculatorPlugin:
    """Plugin for basic arithmetic."""

    def calculator(
        self, a: float, b: float, operation: Literal["add", "subtract", "multiply", "divide"]
    ) -> dict:
        """Perform basic mathematical operations: addition, subtraction, multiplication, or division.

        Args:
            a: The first number
            b: The second number
            operation: The mathematical operation to perform
        """
        logger.info(f"Calculator: {a} {operation} {b}")

        if operation == "add":
            result = a + b
        elif operation == "subtract":
            result = a - b
        elif operation == "multiply":
            result = a * b
        elif operation == "divide":
            if b == 0:
                return {"error": "Cannot divide by zero", "a": a, "b": b, "operation": operation}
            result = a / b
        else:
            return {"error": "Invalid operation", "a": a, "b": b, "operation": operation}

        return {"a": a, "b": b, "operation": operation, "result": result}

    def hook_provide_tools(self):
        return [self.calculator]

    def hook_provide_tool_descriptions(self):
        return {
            "calculator": {
                "workingDescription": "Calculating...",
                "completedDescription": "Calculation completed",
                "errorDescription": "Calculation failed",
            }
        }
