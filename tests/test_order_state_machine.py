import pytest

from storefront.errors import InvalidTransition
from storefront.models import OrderStatus
from storefront.services.orders import check_transition, can_transition, is_terminal


@pytest.mark.parametrize(
    "current,new",
    [
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    ],
)
def test_allowed_transitions(current, new):
    assert can_transition(current, new)
    check_transition(current, new)


@pytest.mark.parametrize(
    "current,new",
    [
        (OrderStatus.DELIVERED, OrderStatus.PENDING),
        (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.PENDING),
        (OrderStatus.CANCELLED, OrderStatus.SHIPPED),
        (OrderStatus.PENDING, OrderStatus.DELIVERED),
        (OrderStatus.SHIPPED, OrderStatus.PENDING),
        (OrderStatus.PENDING, OrderStatus.PENDING),
    ],
)
def test_rejected_transitions(current, new):
    assert not can_transition(current, new)
    with pytest.raises(InvalidTransition):
        check_transition(current, new)


def test_terminal_states():
    assert is_terminal(OrderStatus.DELIVERED)
    assert is_terminal(OrderStatus.CANCELLED)
    assert not is_terminal(OrderStatus.PENDING)
    assert not is_terminal(OrderStatus.SHIPPED)
