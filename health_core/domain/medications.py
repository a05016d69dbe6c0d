"""
Drug potency tables for the medication cascades.

Statins are ranked by expected LDL reduction (%), GLP-1 class agents by
expected body weight loss (%). A drug at its highest listed dose whose
potency is still below the class threshold is a candidate for switching to a
more potent drug.
"""

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class PotencyTable:
    """Dose -> effect (%) per drug, plus the 'adequately potent' cutoff."""

    doses: dict[str, dict[float, float]]
    potent_threshold: float
    preferred_drug: str

    def knows(self, drug: str | None) -> bool:
        return drug is not None and drug in self.doses

    def _dose_key(self, drug: str, dose: float | None) -> float:
        # Missing dose: assume the starting (lowest) dose
        listed = sorted(self.doses[drug])
        if dose is None:
            return listed[0]
        return dose

    def effect(self, drug: str, dose: float | None) -> float | None:
        """Expected effect for a listed drug/dose pair, None when unlisted."""
        if not self.knows(drug):
            return None
        return self.doses[drug].get(self._dose_key(drug, dose))

    def max_dose(self, drug: str) -> float:
        return max(self.doses[drug])

    def can_increase_dose(self, drug: str | None, dose: float | None) -> bool:
        """A higher listed dose of the same drug exists."""
        if not self.knows(drug):
            return False
        current = self._dose_key(drug, dose)
        return any(listed > current for listed in self.doses[drug])

    def should_suggest_switch(self, drug: str | None, dose: float | None) -> bool:
        """At the maximum dose of a drug that stays below the potency threshold."""
        if not self.knows(drug) or self.can_increase_dose(drug, dose):
            return False
        return self.doses[drug][self.max_dose(drug)] < self.potent_threshold

    def is_on_max_potency(self, drug: str | None, dose: float | None) -> bool:
        """Nothing left to escalate within this class."""
        if not self.knows(drug):
            return False
        return not self.can_increase_dose(drug, dose) and not self.should_suggest_switch(
            drug, dose
        )


# % LDL-C reduction
STATIN_TABLE: Final = PotencyTable(
    doses={
        "atorvastatin": {10: 37, 20: 43, 40: 49, 80: 55},
        "rosuvastatin": {5: 38, 10: 43, 20: 48, 40: 53},
        "simvastatin": {10: 28, 20: 35, 40: 41},
        "pravastatin": {10: 20, 20: 24, 40: 34, 80: 37},
        "pitavastatin": {1: 31, 2: 36, 4: 43},
    },
    potent_threshold=50,
    preferred_drug="rosuvastatin",
)

# % body weight loss
GLP1_TABLE: Final = PotencyTable(
    doses={
        "tirzepatide": {2.5: 5, 5: 15, 7.5: 17, 10: 19.5, 12.5: 20, 15: 20.9},
        "semaglutide": {0.25: 2, 0.5: 4, 1.0: 8, 1.7: 12, 2.4: 14.9},
        "semaglutide_oral": {3: 2, 7: 3.5, 14: 5},
        "liraglutide": {0.6: 1, 1.2: 2, 1.8: 4, 2.4: 5, 3.0: 8},
        "dulaglutide": {0.75: 2, 1.5: 3, 3: 4, 4.5: 4.7},
    },
    potent_threshold=20,
    preferred_drug="tirzepatide",
)

SGLT2_DRUGS: Final = frozenset({"empagliflozin", "dapagliflozin", "canagliflozin", "ertugliflozin"})

# Placeholder values stored in the drug-name column instead of a real drug
INACTIVE_DRUG_NAMES: Final = frozenset({"none", "not_yet", "not_tolerated", "no", "declined"})


def display_drug_name(drug: str) -> str:
    """'semaglutide_oral' -> 'Semaglutide (oral)'."""
    base, _, route = drug.partition("_")
    name = base[:1].upper() + base[1:]
    return f"{name} ({route})" if route else name
