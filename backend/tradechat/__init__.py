"""TradeChat backend: multi-provider LLM streaming for the trading assistant."""
