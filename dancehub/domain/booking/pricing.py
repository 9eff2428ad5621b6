from typing import Optional


def has_member_discount(regular_price: float, member_price: Optional[float], is_member: bool) -> bool:
    return bool(is_member and member_price is not None and member_price < regular_price)


def select_price(regular_price: float, member_price: Optional[float], is_member: bool) -> float:
    """Members pay the member price, but only when one is set and it is actually lower"""
    if has_member_discount(regular_price, member_price, is_member):
        return member_price
    return regular_price


def to_cents(amount: float) -> int:
    return int(round(amount * 100))
