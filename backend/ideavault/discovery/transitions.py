"""Phase transition detection.

Pure function -- no side effects, no I/O. The model "self-reports" readiness
to move on by using one of the trigger phrases its phase prompt asks for. A
missed phrase is a false negative: the phase simply does not advance and the
conversation continues.
"""
from collections.abc import Iterable, Mapping

from ideavault.discovery.phases import KEYWORD_DRIVEN_PHASES, DiscoveryPhase


def find_trigger_phrase(text: str, phrases: Iterable[str]) -> str | None:
    """Return the first phrase contained in ``text`` (case-insensitive), or None."""
    lowered = text.lower()
    for phrase in phrases:
        if phrase.lower() in lowered:
            return phrase
    return None


def detect_phase_transition(
    current_phase: DiscoveryPhase,
    model_output: str,
    signals: Mapping[DiscoveryPhase, Iterable[str]],
) -> DiscoveryPhase:
    """Decide the phase after an assistant reply.

    Args:
        current_phase: Phase the reply was produced in
        model_output: Assistant reply text
        signals: Trigger phrases keyed by the phase they lead out of

    Returns:
        The next phase in order if a trigger phrase matched, else ``current_phase``.
        SYNTHESIS and COMPLETE are never advanced here: leaving SYNTHESIS depends
        on a successful synthesis parse.
    """
    if current_phase not in KEYWORD_DRIVEN_PHASES:
        return current_phase

    if find_trigger_phrase(model_output, signals.get(current_phase, ())) is not None:
        return current_phase.next_phase()

    return current_phase
