"""Exact fixed-point token amounts.

Token quantities are stored as an integer count of base units plus the token's
decimal scale. Nothing here goes through float or a decimal context, so
78-digit values survive unchanged. Reducing the scale truncates toward zero
(ROUND_DOWN); increasing it is always exact.
"""

from dataclasses import dataclass
from decimal import Decimal

MAX_STORED_SCALE = 18  # amount_dec column is NUMERIC(78, 18)


@dataclass(frozen=True)
class FixedPointAmount:
    raw: int  # base units
    scale: int = 0  # number of fractional decimal digits

    def __post_init__(self) -> None:
        if self.scale < 0:
            raise ValueError(f"scale must be >= 0, got {self.scale}")

    @classmethod
    def from_human(cls, value: str | int | Decimal, scale: int) -> "FixedPointAmount":
        """Shift a human-readable amount ("1.5") into base units at `scale`.

        Fractional digits beyond `scale` are truncated.
        """
        if scale < 0:
            raise ValueError(f"scale must be >= 0, got {scale}")
        text = str(value).strip()
        if not text:
            return cls(0, scale)
        parsed = Decimal(text)
        if not parsed.is_finite():
            raise ValueError(f"amount is not finite: {value!r}")

        sign, digits, exponent = parsed.as_tuple()
        coefficient = int("".join(str(d) for d in digits)) if digits else 0
        shift = exponent + scale
        if shift >= 0:
            raw = coefficient * 10**shift
        else:
            raw = coefficient // 10 ** (-shift)
        return cls(-raw if sign else raw, scale)

    def rescale(self, scale: int) -> "FixedPointAmount":
        if scale == self.scale:
            return self
        if scale > self.scale:
            return FixedPointAmount(self.raw * 10 ** (scale - self.scale), scale)
        magnitude = abs(self.raw) // 10 ** (self.scale - scale)
        return FixedPointAmount(-magnitude if self.raw < 0 else magnitude, scale)

    def capped(self, max_scale: int = MAX_STORED_SCALE) -> "FixedPointAmount":
        """Drop precision beyond `max_scale` fractional digits."""
        return self.rescale(max_scale) if self.scale > max_scale else self

    def render(self) -> str:
        """Plain decimal string, trailing fractional zeros trimmed, no exponent."""
        sign = "-" if self.raw < 0 else ""
        if self.scale == 0:
            return f"{sign}{abs(self.raw)}"
        integer, fraction = divmod(abs(self.raw), 10**self.scale)
        if fraction == 0:
            return f"{sign}{integer}"
        digits = str(fraction).rjust(self.scale, "0").rstrip("0")
        return f"{sign}{integer}.{digits}"

    def to_decimal(self) -> Decimal:
        # Built from the string so no context precision applies.
        return Decimal(self.render())

    def __str__(self) -> str:
        return self.render()


def render_amount(raw: int, decimals: int | None) -> str:
    """Render base units as the stored decimal string (scale capped at 18)."""
    if decimals is None or decimals <= 0:
        return str(raw)
    return FixedPointAmount(raw, decimals).capped().render()


def format_decimal(value: Decimal) -> str:
    """Plain notation without trailing fractional zeros (NUMERIC columns come back zero-padded)."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
