"""
Narrative Module.

Short motorist-facing text for a route's analytics. The Gemini model is
asked for two sentences; when it is unavailable or fails, a template chosen
by density tier is used instead, so annotate() always returns text.
"""

import logging
import re
import threading
import time
from typing import Optional, Sequence

import google.generativeai as genai

from analytics import recent_samples
from exceptions import NarrativeError
from schemas import TrafficPrediction, TrafficSample, TrafficSummary

logger = logging.getLogger(__name__)

MAX_SENTENCES = 2
RECENT_SAMPLES_IN_PROMPT = 10
PREDICTIONS_IN_PROMPT = 3

HEAVY_DENSITY = 0.7
MODERATE_DENSITY = 0.4


def pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def build_prompt(
    route_name: str,
    summary: TrafficSummary,
    samples: Sequence[TrafficSample],
    predictions: Sequence[TrafficPrediction],
) -> str:
    recent = recent_samples(list(samples), RECENT_SAMPLES_IN_PROMPT)
    recent_lines = "\n".join(f"{s.timestamp.isoformat()} {pct(s.density)}" for s in recent) or "none"
    upcoming_lines = "\n".join(
        f"{p.date.isoformat()} {p.hour_bucket} {pct(p.predicted_density)}"
        for p in list(predictions)[:PREDICTIONS_IN_PROMPT]
    ) or "none"

    return f"""You are a traffic advisor for a modern jeepney transit service.
You are generating a user-facing summary for motorists.
Provide exactly two short sentences, direct and plain English, no bullet points.
Mention congestion level briefly and one practical tip, nothing else.

Context for route "{route_name}":
- Avg density: {pct(summary.average_density)}
- Peak hours: {', '.join(summary.peak_hours) or 'n/a'}
- Low hours: {', '.join(summary.low_hours) or 'n/a'}
- Weekday vs Weekend: {pct(summary.weekday_avg)} vs {pct(summary.weekend_avg)}
- Trend: {summary.trend.value}

Recent data points:
{recent_lines}

Next predictions:
{upcoming_lines}"""


def truncate_sentences(text: str, max_sentences: int = MAX_SENTENCES) -> str:
    flat = re.sub(r"\n+", " ", (text or "").strip())
    if not flat:
        return ""
    sentences = re.split(r"(?<=[.!?])\s+", flat)
    return " ".join(sentences[:max_sentences]).strip()


def fallback_narrative(route_name: str, summary: TrafficSummary) -> str:
    density = summary.average_density
    if density > HEAVY_DENSITY:
        peak = ", ".join(summary.peak_hours) or "rush hours"
        return (
            f"{route_name} is experiencing heavy traffic with average congestion at {pct(density)}. "
            f"Avoid travelling around {peak} if possible."
        )
    if density >= MODERATE_DENSITY:
        return (
            f"{route_name} shows moderate traffic with average congestion at {pct(density)}. "
            f"Allow a few extra minutes during busy periods."
        )
    return (
        f"{route_name} currently has light traffic with average congestion at {pct(density)}. "
        f"Travel conditions are generally smooth."
    )


def compose_narrative(route_name: str, summary: TrafficSummary, reply: Optional[str]) -> str:
    """
    Pick the final text: the truncated model reply when there is one,
    otherwise the density-tier template. A missing reply is a normal input.
    """
    text = truncate_sentences(reply) if reply else ""
    return text or fallback_narrative(route_name, summary)


class RateLimitGate:
    """Serializes callers and keeps at least ``min_interval`` seconds between them."""

    def __init__(self, min_interval: float = 1.0, clock=time.monotonic, sleep=time.sleep):
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self._lock = threading.Lock()
        self._last = None

    def __enter__(self):
        self._lock.acquire()
        if self._last is not None:
            wait = self.min_interval - (self.clock() - self._last)
            if wait > 0:
                self.sleep(wait)
        return self

    def __exit__(self, exc_type, exc, tb):
        self._last = self.clock()
        self._lock.release()
        return False


class GeminiNarrativeGenerator:
    def __init__(self, api_key: str, model_name: str = "gemini-2.0-flash", timeout: float = 15.0):
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name)
        self.timeout = timeout

    def generate(self, prompt: str) -> str:
        try:
            response = self.model.generate_content(prompt, request_options={"timeout": self.timeout})
            text = response.text
        except Exception as e:
            raise NarrativeError(f"Gemini request failed: {e}") from e

        if not text or not text.strip():
            raise NarrativeError("Gemini returned an empty reply")
        return text


class NarrativeAnnotator:
    def __init__(self, generator=None, gate: Optional[RateLimitGate] = None):
        self.generator = generator
        self.gate = gate or RateLimitGate()

    def annotate(
        self,
        route_name: str,
        summary: TrafficSummary,
        samples: Sequence[TrafficSample] = (),
        predictions: Sequence[TrafficPrediction] = (),
    ) -> str:
        reply = None
        if self.generator is not None:
            prompt = build_prompt(route_name, summary, samples, predictions)
            with self.gate:
                try:
                    reply = self.generator.generate(prompt)
                except NarrativeError as e:
                    logger.warning(f"Narrative for {route_name} falls back to template: {e}")
        return compose_narrative(route_name, summary, reply)
