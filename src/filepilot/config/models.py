from dataclasses import dataclass


@dataclass
class EngineConfig:
    debounce_ms: int = 300
    notification_ms: int = 3000
    max_conflict_attempts: int = 100
    search_page_size: int = 200
    history_enabled: bool = True
