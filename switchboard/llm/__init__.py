"""
LLM routing layer — provider adapters, routing, cost and usage telemetry.

Modules:
- types: Requests, responses, stream chunks, usage and cost
- cost: Static pricing table and per-call cost calculation
- models: Model aliases and provider detection from model ids
- providers: Anthropic, OpenAI, OpenRouter, Google and Ollama adapters
- retry: Bounded backoff for rate-limited provider calls
- telemetry: Fire-and-forget usage reporting to the state service
- router: LLMRouter — resolution, model selection, fallback, streaming
- streaming: Helpers for consuming routed streams
- factory: Router construction from environment credentials
"""
