"""Intent -> context layer permissions.

The mapping is a total table over :class:`Intent`; nothing else (confidence,
thread history, scope) influences it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from decision_layer.intent.types import Intent


@dataclass(frozen=True)
class ContextLayers:
    product_identity: bool = True
    product_ssot: bool = False
    single_meeting: bool = False
    multi_meeting: bool = False
    document_context: bool = False
    slack_search: bool = False


@dataclass(frozen=True)
class ContextLayerMetadata:
    intent: Intent
    layers: ContextLayers


_INTENT_LAYERS: dict[Intent, tuple[str, ...]] = {
    Intent.SINGLE_MEETING: ("single_meeting",),
    Intent.MULTI_MEETING: ("multi_meeting",),
    Intent.PRODUCT_KNOWLEDGE: ("product_ssot",),
    Intent.DOCUMENT_SEARCH: ("document_context",),
    # Research answers chain into value-prop matching
    Intent.EXTERNAL_RESEARCH: ("product_ssot",),
    Intent.GENERAL_HELP: (),
    Intent.REFUSE: (),
    Intent.CLARIFY: (),
}

_missing = set(Intent) - set(_INTENT_LAYERS)
if _missing:
    raise RuntimeError(f"No context layer mapping for: {sorted(i.value for i in _missing)}")


def compute_context_layers(intent: Intent) -> ContextLayerMetadata:
    extra = _INTENT_LAYERS[intent]
    layers = ContextLayers(**{name: True for name in extra})
    return ContextLayerMetadata(intent=intent, layers=layers)


def enabled_layer_names(layers: ContextLayers) -> list[str]:
    return [name for name, enabled in asdict(layers).items() if enabled]


def can_access_product_ssot(layers: ContextLayers) -> bool:
    return layers.product_ssot


def can_access_single_meeting(layers: ContextLayers) -> bool:
    return layers.single_meeting


def can_access_multi_meeting(layers: ContextLayers) -> bool:
    return layers.multi_meeting


def can_access_document_context(layers: ContextLayers) -> bool:
    return layers.document_context


def can_access_slack_search(layers: ContextLayers) -> bool:
    return layers.slack_search
