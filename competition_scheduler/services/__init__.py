"""
Services Layer

Scheduling engine and orchestration:
- Pure, synchronous scheduling core (stages, tournaments, modes, sessions, schedules)
- Async orchestration over external collaborators (event data, scores, storage, events)
- No HTTP request/response objects anywhere in this layer
"""
