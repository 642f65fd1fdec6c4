"""bleedserve prober package.

    protocol.py    — Prober Protocol + ProbeSignal + ProbeOutcome
    http_prober.py — HttpProber (httpx client for the external probe service)
"""

from bleedserve.prober.protocol import ProbeOutcome, Prober, ProbeSignal

__all__ = ["ProbeOutcome", "Prober", "ProbeSignal"]
