"""Rules layer for Hearthstead.

This package holds everything that can be evaluated without a database:

* Static content tables (see :mod:`catalog`).
* The eligibility gate and effect aggregator (:mod:`eligibility`,
  :mod:`effects`).
* The lifecycle state machine used by petitions, elections and requests.
* Enumerations, rule constants and the error taxonomy.

Services in :mod:`hearthstead.services` load rows, call into these modules and
persist the outcome.
"""

from . import (
    catalog,
    effects,
    eligibility,
    enums,
    errors,
    lifecycle,
    models,
    rules_config,
)

__all__ = [
    "catalog",
    "effects",
    "eligibility",
    "enums",
    "errors",
    "lifecycle",
    "models",
    "rules_config",
]
