"""Fixed-point token amounts."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, localcontext

U128 = 1 << 128
DEFAULT_DECIMALS = 18


@dataclass(frozen=True)
class TokenAmount:
    """Raw base units plus the token's decimal count.

    Never converted through float; whole units truncate toward zero.
    """

    raw: int
    decimals: int = DEFAULT_DECIMALS

    @classmethod
    def from_u256(cls, low: int, high: int, decimals: int = DEFAULT_DECIMALS) -> TokenAmount:
        return cls(low + high * U128, decimals)

    @property
    def whole_units(self) -> int:
        scale = 10 ** self.decimals
        if self.raw < 0:
            return -((-self.raw) // scale)
        return self.raw // scale

    def to_decimal(self) -> Decimal:
        return Decimal(self.raw).scaleb(-self.decimals)

    def __add__(self, other: TokenAmount) -> TokenAmount:
        if self.decimals != other.decimals:
            raise ValueError("cannot add amounts with different decimals")
        return TokenAmount(self.raw + other.raw, self.decimals)

    def __neg__(self) -> TokenAmount:
        return TokenAmount(-self.raw, self.decimals)

    def __abs__(self) -> TokenAmount:
        return TokenAmount(abs(self.raw), self.decimals)

    def format(self, places: int = 4) -> str:
        """Decimal string rounded to ``places`` fractional digits."""
        quantum = Decimal(1).scaleb(-places)
        with localcontext() as ctx:
            ctx.prec = 100  # u256 amounts exceed the default 28 digits
            return format(self.to_decimal().quantize(quantum).normalize(), "f")
