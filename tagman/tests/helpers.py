from __future__ import annotations

from django.dispatch import Signal

from tagman.models import TagConfig


class SignalRecorder:
    """Guarda os kwargs de cada envio de um sinal."""

    def __init__(self, signal: Signal) -> None:
        self.signal = signal
        self.calls: list[dict] = []
        signal.connect(self, weak=False, dispatch_uid=f"recorder-{id(self)}")

    def __call__(self, sender, **kwargs) -> None:
        kwargs.pop("signal", None)
        self.calls.append(kwargs)

    def disconnect(self) -> None:
        self.signal.disconnect(dispatch_uid=f"recorder-{id(self)}")

    @property
    def count(self) -> int:
        return len(self.calls)


def make_config(entity_type: str = "inventory.Equipment", **fields) -> TagConfig:
    fields.setdefault("prefix", "EQ")
    return TagConfig.objects.create(entity_type=entity_type, **fields)
