"""
Module: ledger_kernel.db.types
Responsibility: Scale, rounding and comparison helpers for monetary values.
    Centralizes scale, rounding, tolerance and currency validation so that
    every model and service handles amounts identically.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Amounts are Decimal with MONEY_DECIMAL_PLACES (2) places.  Floats are
      rejected by to_money() so that binary rounding never enters the ledger.
    - Amount equality is judged with BALANCE_TOLERANCE (0.01).
    - round_money() is the only rounding helper; ROUND_HALF_UP.
    - Currency codes are ISO 4217 (validate_currency).

Failure modes:
    - InvalidCurrencyError on unknown currency codes.
    - TypeError from to_money() when handed a float.
    - ValueError from to_money() on non-numeric strings.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ledger_kernel.exceptions import InvalidCurrencyError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")
BALANCE_TOLERANCE = Decimal("0.01")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the ledger scale.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to ``decimal_places``.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def to_money(value: Decimal | int | str | None) -> Decimal:
    """
    Coerce an amount into a two-decimal Decimal.

    None becomes zero.  Floats are refused: callers must pass Decimal,
    int or a numeric string.

    Raises:
        TypeError: value is a float or an unsupported type.
        ValueError: value is a string that is not a number.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary amounts must not be {type(value).__name__}: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    else:
        raise TypeError(f"Unsupported amount type: {type(value).__name__}")
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return round_money(amount)


def amounts_equal(left: Decimal, right: Decimal, tolerance: Decimal = BALANCE_TOLERANCE) -> bool:
    """True when two amounts differ by strictly less than ``tolerance``."""
    return abs(left - right) < tolerance


ISO_4217_CURRENCIES: frozenset[str] = frozenset(
    """
    USD EUR GBP JPY CHF CAD AUD NZD
    AED AFN ALL AMD ANG AOA ARS AWG AZN BAM BBD BDT BGN BHD BIF BMD BND BOB
    BOV BRL BSD BTN BWP BYN BZD CDF CHE CHW CLF CLP CNY COP COU CRC CUC CUP
    CVE CZK DJF DKK DOP DZD EGP ERN ETB FJD FKP GEL GHS GIP GMD GNF GTQ GYD
    HKD HNL HTG HUF IDR ILS INR IQD IRR ISK JMD JOD KES KGS KHR KMF KPW KRW
    KWD KYD KZT LAK LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR
    MVR MWK MXN MXV MYR MZN NAD NGN NIO NOK NPR OMR PAB PEN PGK PHP PKR PLN
    PYG QAR RON RSD RUB RWF SAR SBD SCR SDG SEK SGD SHP SLE SLL SOS SRD SSP
    STN SVC SYP SZL THB TJS TMT TND TOP TRY TTD TWD TZS UAH UGX USN UYI UYU
    UYW UZS VED VES VND VUV WST XAF XAG XAU XCD XDR XOF XPF XTS XXX YER ZAR
    ZMW ZWL
    """.split()
)


def validate_currency(currency: str) -> str:
    """
    Validate and normalize an ISO 4217 currency code.

    Returns:
        The uppercase, trimmed code.

    Raises:
        InvalidCurrencyError: If the code is not a valid ISO 4217 code.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.upper().strip()
    if normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)
    return normalized


def money_from_db(value) -> Decimal:
    """
    Normalize an aggregate read back from the database (SUM may come back
    as None, int, float or Decimal depending on the driver).
    """
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return round_money(value)
