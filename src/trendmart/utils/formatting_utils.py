from decimal import Decimal
from typing import NamedTuple


class CurrencyFormat(NamedTuple):
    symbol: str
    minor_digits: int
    symbol_first: bool


class FormattingUtils:
    """
    Display formatting for notification emails

    Money is always held as integer minor units; these helpers only render it.
    """

    CURRENCIES = {
        'USD': CurrencyFormat('$', 2, True),
        'EUR': CurrencyFormat('€', 2, False),
        'GBP': CurrencyFormat('£', 2, True),
        'JPY': CurrencyFormat('¥', 0, True),
        'MMK': CurrencyFormat('Ks', 2, False),
    }

    @classmethod
    def format_money(
        cls,
        amount_minor: int,
        currency: str = 'USD',
        include_symbol: bool = True,
        include_currency_code: bool = False
    ) -> str:
        """
        format_money(1299, 'USD') -> "$12.99"
        format_money(123456, 'MMK') -> "1,234.56 Ks"
        format_money(500, 'JPY', include_currency_code=True) -> "¥500 JPY"

        Unknown currencies render with USD rules.
        """
        fmt = cls.CURRENCIES.get(currency, cls.CURRENCIES['USD'])
        amount = Decimal(amount_minor).scaleb(-fmt.minor_digits)
        result = f"{amount:,.{fmt.minor_digits}f}"

        if include_symbol:
            result = f"{fmt.symbol}{result}" if fmt.symbol_first else f"{result} {fmt.symbol}"
        if include_currency_code:
            result = f"{result} {currency}"
        return result
