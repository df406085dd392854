"""
Voice command adapter.

Consumes recognizer output {"utterance": "para cima", "confidence": 0.9,
"alternates": ["pára cima"]}. Speech recognition itself happens upstream;
this adapter only matches text against a vocabulary.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from ..types import Signal
from .base import DeviceAdapter, DeviceType, Trigger

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.7

_PUNCTUATION = re.compile(r"[^\w\s]", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Case-fold, strip diacritics and punctuation, collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", text.casefold())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    stripped = _PUNCTUATION.sub(" ", stripped)
    return _WHITESPACE.sub(" ", stripped).strip()


DEFAULT_VOCABULARY: Dict[str, Signal] = {
    # Directions
    "cima": Signal.ONE,
    "direita": Signal.TWO,
    "baixo": Signal.THREE,
    "esquerda": Signal.FOUR,
    # Numbers
    "um": Signal.ONE,
    "dois": Signal.TWO,
    "três": Signal.THREE,
    "quatro": Signal.FOUR,
    # Actions
    "confirmar": Signal.ONE,
    "cancelar": Signal.TWO,
    "voltar": Signal.THREE,
    "avançar": Signal.FOUR,
    # Navigation
    "próximo": Signal.ONE,
    "anterior": Signal.TWO,
    "selecionar": Signal.THREE,
    "sair": Signal.FOUR,
    # English fallbacks
    "up": Signal.ONE,
    "right": Signal.TWO,
    "down": Signal.THREE,
    "left": Signal.FOUR,
    "yes": Signal.ONE,
    "no": Signal.TWO,
}

DEFAULT_SYNONYMS: Dict[str, List[str]] = {
    "cima": ["acima", "para cima", "subir", "norte"],
    "direita": ["para direita", "leste"],
    "baixo": ["abaixo", "para baixo", "descer", "sul"],
    "esquerda": ["para esquerda", "oeste"],
    "um": ["1", "one", "primeiro"],
    "dois": ["2", "two", "segundo"],
    "três": ["3", "three", "terceiro"],
    "quatro": ["4", "four", "quarto"],
    "confirmar": ["ok", "sim", "confirma"],
    "cancelar": ["cancela", "não"],
    "voltar": ["volta", "retornar", "back"],
    "avançar": ["avança", "seguir", "next"],
}


class VoiceAdapter(DeviceAdapter):
    """
    Maps recognized utterances to signals.

    Lookup order for each candidate utterance: direct trigger match,
    then synonym resolution. Candidates are the primary utterance
    followed by the alternates, in order.

    Example:
        >>> voice = VoiceAdapter()
        >>> voice.hear("Três")
        <Signal.THREE: 3>
        >>> voice.hear("para cima", confidence=0.4) is None
        True
    """

    device_type = DeviceType.VOICE

    def __init__(
        self,
        custom_mappings: Optional[Mapping[Trigger, Union[Signal, int]]] = None,
        enabled: bool = True,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        synonyms: Optional[Mapping[str, Iterable[str]]] = None,
    ):
        super().__init__(custom_mappings, enabled)
        self.confidence_threshold = confidence_threshold
        # synonym -> canonical trigger
        self._synonyms: Dict[str, str] = {}
        for canonical, words in DEFAULT_SYNONYMS.items():
            self.add_synonyms(canonical, words)
        for canonical, words in (synonyms or {}).items():
            self.add_synonyms(canonical, words)
        self.low_confidence_count = 0

    def default_mappings(self) -> Dict[Trigger, Signal]:
        return dict(DEFAULT_VOCABULARY)

    def normalize_trigger(self, trigger: Trigger) -> Trigger:
        return normalize_text(str(trigger))

    def validate_input(self, raw: Any) -> bool:
        if not isinstance(raw, Mapping) or not isinstance(raw.get("utterance"), str):
            return False
        confidence = raw.get("confidence", 1.0)
        if not isinstance(confidence, (int, float)):
            return False
        if confidence < self.confidence_threshold:
            self.low_confidence_count += 1
            logger.debug(f"Rejected utterance {raw['utterance']!r}: low confidence")
            return False
        return True

    def extract_trigger(self, raw: Mapping[str, Any]) -> Optional[Trigger]:
        candidates = [raw["utterance"]] + list(raw.get("alternates") or [])
        for candidate in candidates:
            trigger = self.resolve(candidate)
            if trigger is not None:
                return trigger
        return None

    def resolve(self, utterance: str) -> Optional[str]:
        """Map an utterance to a known trigger, or None."""
        text = normalize_text(utterance)
        if not text:
            return None
        if text in self._mappings:
            return text
        canonical = self._synonyms.get(text)
        if canonical is not None and canonical in self._mappings:
            return canonical
        return None

    def add_synonyms(self, canonical: str, words: Iterable[str]) -> None:
        """Register words that resolve to an existing trigger."""
        target = normalize_text(canonical)
        for word in words:
            self._synonyms[normalize_text(word)] = target

    def remove_synonyms(self, canonical: str) -> None:
        target = normalize_text(canonical)
        for word in [w for w, c in self._synonyms.items() if c == target]:
            del self._synonyms[word]

    def get_synonyms(self, canonical: str) -> Set[str]:
        target = normalize_text(canonical)
        return {w for w, c in self._synonyms.items() if c == target}

    def hear(
        self,
        utterance: str,
        confidence: float = 1.0,
        alternates: Optional[Sequence[str]] = None,
    ) -> Optional[Signal]:
        return self.normalize({
            "utterance": utterance,
            "confidence": confidence,
            "alternates": list(alternates or []),
        })

    def get_statistics(self) -> Dict[str, Any]:
        stats = super().get_statistics()
        stats["low_confidence"] = self.low_confidence_count
        stats["synonyms"] = len(self._synonyms)
        return stats

    def reset_statistics(self) -> None:
        super().reset_statistics()
        self.low_confidence_count = 0
