from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .llm_interaction.declarations import is_valid_ability_name
from .schemas import AbilityDefinition


logger = logging.getLogger(__name__)

REJECT = "reject"
OVERWRITE = "overwrite"
DUPLICATE_POLICIES = (REJECT, OVERWRITE)


class DuplicateAbilityError(ValueError):
    """Raised when a registration would shadow an existing ability."""


class InvalidAbilityNameError(ValueError):
    """Raised for names that cannot round-trip through the provider's naming rules."""


class AbilityRegistry:
    """
    Catalog of abilities exposed to the model, keyed by unique name.

    Populated at startup and read by every request afterwards. Iteration
    follows insertion order; overwriting an existing name keeps its slot.
    """

    def __init__(
        self,
        abilities: Optional[Iterable[AbilityDefinition]] = None,
        *,
        on_duplicate: str = REJECT,
    ) -> None:
        if on_duplicate not in DUPLICATE_POLICIES:
            raise ValueError(f"Unknown duplicate policy '{on_duplicate}'")
        self.on_duplicate = on_duplicate
        self._abilities: Dict[str, AbilityDefinition] = {}
        for definition in abilities or []:
            self.register(definition)

    def register(self, definition: AbilityDefinition) -> AbilityDefinition:
        name = definition.name
        if not is_valid_ability_name(name):
            raise InvalidAbilityNameError(
                f"Ability name '{name}' must look like 'namespace/action-name' "
                "(letters, digits, '-', '.', ':'; no '_')"
            )

        if name in self._abilities:
            if self.on_duplicate == REJECT:
                raise DuplicateAbilityError(f"Ability '{name}' is already registered")
            logger.info("Overwriting ability '%s'", name)

        self._abilities[name] = definition
        return definition

    def get(self, name: str) -> Optional[AbilityDefinition]:
        return self._abilities.get(name)

    def list_all(self) -> List[AbilityDefinition]:
        return list(self._abilities.values())

    def names(self) -> List[str]:
        return list(self._abilities)

    def __contains__(self, name: object) -> bool:
        return name in self._abilities

    def __len__(self) -> int:
        return len(self._abilities)


__all__ = [
    "AbilityRegistry",
    "DuplicateAbilityError",
    "InvalidAbilityNameError",
    "DUPLICATE_POLICIES",
    "OVERWRITE",
    "REJECT",
]
