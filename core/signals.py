# core/signals.py
from __future__ import annotations

from django.core.signals import setting_changed
from django.dispatch import receiver

from .throttle import reset_download_limiter


@receiver(setting_changed)
def rebuild_limiter_on_settings_change(sender, setting: str, **kwargs) -> None:
    if setting.startswith("DOWNLOAD_RATE_LIMIT_"):
        reset_download_limiter()
