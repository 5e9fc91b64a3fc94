"""
Modstream - LLM-Driven Twitch Chat Moderation

Modstream watches a live chat stream, asks a language model (through a
tool-calling request) whether a message warrants a moderation action, and
dispatches that action against the Twitch Helix API under rate-limit,
allow-list and dry-run controls, recording an audit row for every decision.

Core Components:

- **Tool Catalog**: The fixed set of moderation tools the model may call,
  with JSON schemas and strictly-typed parameter variants
- **Quick Filter**: A cheap pre-screen deciding which messages reach the model
- **Decision Engine**: Builds the prompt, calls the model once, parses the tool call
- **Action Dispatcher**: Admission control, allow-list, dry-run and routing of
  each tool to the Helix API or chat transport
- **Monitor**: Single-consumer asyncio pipeline over a bounded intake queue
- **Interactive Console**: Operator prompt for feeding test messages and
  inspecting live state

Usage:
    from modstream.main import main
    main()  # Starts the monitor with console interface
"""
