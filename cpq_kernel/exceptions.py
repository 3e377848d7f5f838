"""
Typed Exception Hierarchy for the Quote Costing Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A quote that fails to cost must tell the caller *why* it failed: the
request handler turns a bad salary into a 422 on the position form, an
unknown AFP into a prompt to pick a provider, and a missing catalog item
into a warning on the ancillary tab.  None of that is possible by
parsing message strings.

Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA (not just a message string)

Example - RIGHT way:
    try:
        result = compute_employer_cost(salary, rules, computed_at)
    except UnknownAfpProviderError as e:
        api_response(code=e.code, provider=e.provider,
                     known=e.known_providers)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from CpqEngineError:

    CpqEngineError (base)
    |
    +-- PayrollError
    |   +-- InvalidSalaryInputError
    |   +-- UnknownAfpProviderError
    |   +-- UnknownHealthSystemError
    |
    +-- PricingError
    |   +-- InvalidMarginPercentError
    |
    +-- CatalogError
    |   +-- MissingCatalogItemError
    |
    +-- RuleVersionError
    |   +-- RuleVersionNotFoundError
    |   +-- StaleRuleVersionError
    |
    +-- QuoteError
        +-- QuoteNotFoundError
        +-- PositionNotFoundError
        +-- InvalidPositionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|------------------------------------------
Payroll      | INVALID_SALARY_INPUT      | Base salary <= 0 or negative extras
             | UNKNOWN_AFP_PROVIDER      | Provider not in the rule snapshot
             | UNKNOWN_HEALTH_SYSTEM     | Neither fonasa nor isapre
-------------|---------------------------|------------------------------------------
Pricing      | INVALID_MARGIN_PERCENT    | Margin <= 0 or >= 100
-------------|---------------------------|------------------------------------------
Catalog      | MISSING_CATALOG_ITEM      | Line references unknown catalog id
-------------|---------------------------|------------------------------------------
Rule version | RULE_VERSION_NOT_FOUND    | Requested snapshot id does not exist
             | STALE_RULE_VERSION        | Pinned snapshot is not the latest
-------------|---------------------------|------------------------------------------
Quote        | QUOTE_NOT_FOUND           | Quote id unknown to the record store
             | POSITION_NOT_FOUND        | Position id unknown to the record store
             | INVALID_POSITION          | Guard count < 1 or missing salary

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Positions are critical: any PayrollError while costing a position
   aborts the summary and propagates with its specific kind.

2. Ancillary categories are not: the summary builder catches CatalogError
   (and ValueError from malformed lines) per category, zeroes that
   category, logs ``category_degraded`` and lists it in
   ``CpqQuoteCostSummary.degraded_categories``.

3. StaleRuleVersionError is advisory.  It is raised only when a caller
   asks for strict checking; otherwise the mismatch is logged.
"""


class CpqEngineError(Exception):
    """
    Base exception for all quote costing errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CPQ_ENGINE_ERROR"


# Payroll-related exceptions


class PayrollError(CpqEngineError):
    """Base exception for employer cost computation errors."""

    code: str = "PAYROLL_ERROR"


class InvalidSalaryInputError(PayrollError):
    """Salary input is not computable (non-positive base, negative extras)."""

    code: str = "INVALID_SALARY_INPUT"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid salary input {field}={value}: {reason}")


class UnknownAfpProviderError(PayrollError):
    """AFP provider is not present in the payroll rule snapshot."""

    code: str = "UNKNOWN_AFP_PROVIDER"

    def __init__(self, provider: str, rule_version_id: str, known_providers: list[str]):
        self.provider = provider
        self.rule_version_id = rule_version_id
        self.known_providers = known_providers
        super().__init__(
            f"Unknown AFP provider '{provider}' in payroll rules {rule_version_id}"
        )


class UnknownHealthSystemError(PayrollError):
    """Health system is neither fonasa nor isapre."""

    code: str = "UNKNOWN_HEALTH_SYSTEM"

    def __init__(self, health_system: str):
        self.health_system = health_system
        super().__init__(f"Unknown health system: {health_system}")


# Pricing exceptions


class PricingError(CpqEngineError):
    """Base exception for sale price errors."""

    code: str = "PRICING_ERROR"


class InvalidMarginPercentError(PricingError):
    """Margin percent outside the open interval (0, 100)."""

    code: str = "INVALID_MARGIN_PERCENT"

    def __init__(self, margin_pct: str):
        self.margin_pct = margin_pct
        super().__init__(
            f"Margin percent must be greater than 0 and less than 100, got {margin_pct}"
        )


# Catalog exceptions


class CatalogError(CpqEngineError):
    """Base exception for catalog lookup errors."""

    code: str = "CATALOG_ERROR"


class MissingCatalogItemError(CatalogError):
    """Ancillary line references a catalog item that does not exist."""

    code: str = "MISSING_CATALOG_ITEM"

    def __init__(self, catalog_item_id: str, category: str):
        self.catalog_item_id = catalog_item_id
        self.category = category
        super().__init__(
            f"Catalog item {catalog_item_id} not found for {category} line"
        )


# Rule version exceptions


class RuleVersionError(CpqEngineError):
    """Base exception for payroll rule version errors."""

    code: str = "RULE_VERSION_ERROR"


class RuleVersionNotFoundError(RuleVersionError):
    """No payroll rule snapshot with the given id (or for the given date)."""

    code: str = "RULE_VERSION_NOT_FOUND"

    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(f"Payroll rule version not found: {version_id}")


class StaleRuleVersionError(RuleVersionError):
    """Caller pinned a payroll rule version that has been superseded."""

    code: str = "STALE_RULE_VERSION"

    def __init__(self, requested_version_id: str, latest_version_id: str):
        self.requested_version_id = requested_version_id
        self.latest_version_id = latest_version_id
        super().__init__(
            f"Payroll rule version {requested_version_id} is stale; "
            f"latest is {latest_version_id}"
        )


# Quote exceptions


class QuoteError(CpqEngineError):
    """Base exception for quote and position lookups."""

    code: str = "QUOTE_ERROR"


class QuoteNotFoundError(QuoteError):
    """Quote with given ID was not found."""

    code: str = "QUOTE_NOT_FOUND"

    def __init__(self, quote_id: str):
        self.quote_id = quote_id
        super().__init__(f"Quote not found: {quote_id}")


class PositionNotFoundError(QuoteError):
    """Position with given ID was not found on the quote."""

    code: str = "POSITION_NOT_FOUND"

    def __init__(self, position_id: str, quote_id: str | None = None):
        self.position_id = position_id
        self.quote_id = quote_id
        super().__init__(f"Position not found: {position_id}")


class InvalidPositionError(QuoteError):
    """Position fields are structurally invalid."""

    code: str = "INVALID_POSITION"

    def __init__(self, position_id: str, reason: str):
        self.position_id = position_id
        self.reason = reason
        super().__init__(f"Invalid position {position_id}: {reason}")
