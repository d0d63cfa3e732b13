"""Request handling layers between the front-end and the lifecycle core.

Sub-packages:
    - domain: in-memory registries mutated by use cases
    - application: use cases and the AppCoordinator facade
    - presentation: native prompt adapters

Modules:
    - events: outbound events and the EventBus
    - messages: inbound typed requests
    - channel: JSON-lines transport with prompt round-trips
"""
