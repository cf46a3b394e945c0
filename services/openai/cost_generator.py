class CostGenerator:
	"""Price one vision call in USD from its token usage.

	Rates are USD per 1,000 tokens; totals are rounded to `precision` places.
	"""

	DEFAULT_PRICING = {
		"gpt-4o": (0.005, 0.015),
		"gpt-4o-mini": (0.00015, 0.0006),
		"gpt-4.1": (0.002, 0.008),
	}

	def __init__(self, pricing: dict | None = None, precision: int = 6):
		self.pricing = pricing or dict(self.DEFAULT_PRICING)
		self.precision = precision

	def total_cost(self, input_tokens: int, output_tokens: int, model: str) -> float:
		"""Return the rounded cost of a call.

		Raises:
			ValueError: If a token count is negative or the model has no price.
		"""
		if input_tokens < 0 or output_tokens < 0:
			raise ValueError("Token counts must be non-negative integers.")
		rates = self.pricing.get(model.lower())
		if rates is None:
			raise ValueError(f"Unsupported model '{model}'. Supported: {', '.join(self.pricing)}")
		input_rate, output_rate = rates
		return round(input_tokens / 1000.0 * input_rate + output_tokens / 1000.0 * output_rate, self.precision)
