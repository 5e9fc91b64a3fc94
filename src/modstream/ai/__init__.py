"""
Decision oracle integration for Modstream.

- **prompt_builder.py**: Renders the system and user prompts from channel rules,
  sensitivity level, recent chat history and the candidate message.
- **openai_oracle.py**: Oracle implementation using AsyncOpenAI tool calling
  (compatible with vLLM, LM Studio, Ollama, llama.cpp server, etc.).
- **decision_engine.py**: Turns one oracle round-trip into a Decision.
"""
