from decimal import Decimal
from types import SimpleNamespace

import pytest

from cart import Cart


def make_deal(deal_id=1, price="500"):
    return SimpleNamespace(
        id=deal_id,
        name="Burger Deal",
        price=Decimal(price),
        products=[
            SimpleNamespace(
                id=10, name="Burger", quantity=2,
                flavors=[SimpleNamespace(id=100, flavor_name="Zinger"), SimpleNamespace(id=101, flavor_name="Spicy")],
            ),
            SimpleNamespace(id=11, name="Fries", quantity=1, flavors=[]),
        ],
    )


def test_same_selection_merges_into_one_line():
    cart = Cart()
    deal = make_deal()
    cart.add_deal(deal, {10: 100})
    cart.add_deal(deal, {10: 100}, quantity=2)

    assert len(cart.lines) == 1
    assert cart.lines[0].quantity == 3
    assert cart.total() == Decimal("1500")


def test_different_flavor_makes_new_line():
    cart = Cart()
    deal = make_deal()
    cart.add_deal(deal, {10: 100})
    cart.add_deal(deal, {10: 101})

    assert len(cart.lines) == 2
    assert [p.flavor_name for p in cart.lines[1].products] == ["Spicy", None]


def test_unknown_flavor_is_rejected():
    cart = Cart()
    with pytest.raises(ValueError):
        cart.add_deal(make_deal(), {10: 999})
    assert cart.is_empty


def test_quantity_must_be_positive():
    with pytest.raises(ValueError):
        Cart().add_deal(make_deal(), quantity=0)


def test_update_quantity_and_remove():
    cart = Cart()
    cart.add_deal(make_deal(1), {10: 100})
    cart.add_deal(make_deal(2, price="250"), {10: 100})

    cart.update_quantity(1, 4)
    assert cart.total() == Decimal("1500")

    cart.update_quantity(0, 0)
    assert len(cart.lines) == 1
    assert cart.lines[0].deal_id == 2

    cart.clear()
    assert cart.is_empty
    assert cart.total() == Decimal(0)


def test_to_dict_lists_selected_flavors():
    cart = Cart()
    cart.add_deal(make_deal(), {10: 100})
    data = cart.to_dict()

    assert data["total"] == "500"
    assert data["lines"][0]["products"][0]["flavor_name"] == "Zinger"


def test_missing_selection_takes_first_flavor():
    cart = Cart()
    line = cart.add_deal(make_deal())

    assert [(p.flavor_id, p.flavor_name) for p in line.products] == [(100, "Zinger"), (None, None)]

    cart.add_deal(make_deal(), {10: 100})
    assert len(cart.lines) == 1
    assert cart.lines[0].quantity == 2
