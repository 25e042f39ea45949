# friendlyml/models/toxicity.py
"""
Text toxicity classification.

No text backend ships with the package: pass any object implementing the
runtime protocol (``runtime=...``). Its ``predict(handle, texts, params)``
returns, per label, the probability that each text is toxic for that label::

    {"insult": [0.93, 0.02], "threat": [0.01, 0.00], ...}

A label matches when the toxic probability reaches ``threshold``, does not
match when the non-toxic probability does, and is undecided (``None``)
otherwise.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple

from ..args import ResolvedCall, resolve_call
from ..callbacks import call_callback
from ..config import merge_options
from ..errors import MissingArgument
from ..resources import ResourceScope, tensor
from ..results import ResultAdapter, ResultEnvelope, as_numpy
from .base import BaseModel, create_factory

__all__ = ["TOXICITY_LABELS", "TextToxicity", "ToxicityLabel", "ToxicityMatch", "text_toxicity"]

TOXICITY_LABELS: Tuple[str, ...] = (
    "identity_attack",
    "insult",
    "obscene",
    "severe_toxicity",
    "sexual_explicit",
    "threat",
    "toxicity",
)


@dataclass(frozen=True)
class ToxicityMatch:
    probabilities: Tuple[float, float]  # (not toxic, toxic)
    match: Optional[bool]


@dataclass(frozen=True)
class ToxicityLabel:
    label: str
    results: Tuple[ToxicityMatch, ...]


def _match(p_toxic: float, threshold: float) -> Optional[bool]:
    if p_toxic >= threshold:
        return True
    if 1.0 - p_toxic >= threshold:
        return False
    return None


class TextToxicity(BaseModel):
    name = "toxicity"
    event = "classify"
    DEFAULTS: ClassVar[Dict[str, Any]] = {
        "threshold": 0.85,
        "labels": None,
        "return_tensors": False,
    }

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.adapter = ResultAdapter()
        super().__init__(*args, **kwargs)

    @classmethod
    def from_call(cls, call: ResolvedCall, **kwargs: Any) -> "TextToxicity":
        options = merge_options(call.options, {"threshold": call.extra_number} if call.extra_number is not None else None)
        return cls(options, call.callback, **kwargs)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(self.config.get("labels") or TOXICITY_LABELS)

    def classify(self, *args: Any) -> "asyncio.Task[ResultEnvelope]":
        """classify(text | [texts], [options], [callback])."""
        call = resolve_call(*args)

        async def _produce() -> ResultEnvelope:
            if call.array is not None:
                texts = [str(t) for t in call.array]
            else:
                call.require("extra_string", "classify needs a text to check.")
                texts = [str(call.extra_string)]
            if not texts:
                raise MissingArgument("extra_string", "classify needs a text to check.")
            options = merge_options(self.config, call.options)
            return await self._run_inference(texts, options)

        return call_callback(_produce, call.callback)

    # ml5-style alias
    predict = classify

    def shape(self, raw: Any, inputs: Any, options: Mapping[str, Any], scope: ResourceScope) -> ResultEnvelope:
        threshold = float(options.get("threshold", 0.85))
        wanted = tuple(options.get("labels") or self.labels)
        rows: List[List[float]] = []
        out: List[ToxicityLabel] = []
        for label in wanted:
            if label not in raw:
                continue
            probs = as_numpy(raw[label]).reshape(-1)
            if probs.size != len(inputs):
                raise ValueError(f"runtime returned {probs.size} scores for {len(inputs)} texts (label {label!r})")
            rows.append([float(p) for p in probs])
            out.append(
                ToxicityLabel(
                    label=label,
                    results=tuple(ToxicityMatch((1.0 - float(p), float(p)), _match(float(p), threshold)) for p in probs),
                )
            )
        t = tensor(rows, name="toxicity")
        return self.adapter.build(out, options=options, tensor=t, scope=scope)


text_toxicity = create_factory(TextToxicity)
