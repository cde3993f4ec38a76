"""
Cart and Pricing
Line items for unit-priced (pcs) and weight-priced (kg) products, and the
subtotal / discount / total / change arithmetic used at checkout.
"""

from decimal import Decimal
from tindapos.documents import UNIT_KG, UNIT_PCS, UNITS
from tindapos.errors import ValidationError
from tindapos.utils.helpers import round_money, round_weight, to_decimal

ZERO = Decimal('0')


def weight_for_amount(amount, price):
    """Weight bought for a target amount, rounded to 3 decimals"""
    price = to_decimal(price, 'price')
    if price <= 0:
        raise ValidationError("Price must be greater than zero")
    return round_weight(to_decimal(amount, 'amount') / price)


def amount_for_weight(weight, price):
    """Amount charged for a weight, rounded to 2 decimals"""
    return round_money(to_decimal(weight, 'weight') * to_decimal(price, 'price'))


def resolve_weight(price, weight=None, amount=None):
    """Weight from either a direct weight entry or a target amount"""
    if weight not in (None, ''):
        value = round_weight(to_decimal(weight, 'weight'))
    elif amount not in (None, ''):
        value = weight_for_amount(amount, price)
    else:
        raise ValidationError("Enter a weight or an amount")
    if value <= 0:
        raise ValidationError("Weight must be greater than zero")
    return value


class CartLine:
    """One product in the cart, priced per piece or per kilogram"""

    def __init__(self, name, unit, price, qty=None, weight=None):
        self.name = name
        self.unit = unit
        self.price = round_money(price)
        self.qty = int(qty) if unit == UNIT_PCS else None
        self.weight = round_weight(weight) if unit == UNIT_KG else None

    @property
    def key(self):
        return (self.name, self.unit)

    @property
    def quantity(self):
        return Decimal(self.qty) if self.unit == UNIT_PCS else self.weight

    @property
    def total(self):
        return round_money(self.price * self.quantity)

    def to_item(self):
        """Line as stored on a sale or lending document"""
        item = {'name': self.name, 'unit': self.unit, 'price': float(self.price)}
        if self.unit == UNIT_PCS:
            item['qty'] = self.qty
        else:
            item['weight'] = float(self.weight)
        item['lineTotal'] = float(self.total)
        return item

    def to_state(self):
        return {
            'name': self.name,
            'unit': self.unit,
            'price': str(self.price),
            'qty': self.qty,
            'weight': str(self.weight) if self.weight is not None else None,
        }

    @classmethod
    def from_state(cls, state):
        return cls(state['name'], state['unit'], Decimal(state['price']),
                   qty=state.get('qty'), weight=Decimal(state['weight']) if state.get('weight') else None)

    def __repr__(self):
        return f'<CartLine {self.name} {self.quantity}{self.unit} = {self.total}>'


class Cart:
    """Ordered lines, at most one per (name, unit)"""

    def __init__(self, lines=None):
        self.lines = list(lines or [])

    def __len__(self):
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def is_empty(self):
        return not self.lines

    def find(self, name, unit):
        for index, line in enumerate(self.lines):
            if line.key == (name, unit):
                return index
        return None

    def _line(self, index):
        try:
            index = int(index)
        except (TypeError, ValueError):
            raise ValidationError("Invalid cart line")
        if index < 0 or index >= len(self.lines):
            raise ValidationError("Invalid cart line")
        return self.lines[index]

    @staticmethod
    def _product_fields(product):
        name = (product.get('name') or '').strip()
        unit = product.get('unit') or UNIT_PCS
        if not name:
            raise ValidationError("Product name is required")
        if unit not in UNITS:
            raise ValidationError(f"Unknown unit: {unit}")
        price = to_decimal(product.get('price'), 'price')
        if price <= 0:
            raise ValidationError("Price must be greater than zero")
        return name, unit, price

    def add_product(self, product, weight=None, amount=None):
        """
        Add a product to the cart.

        pcs products add one piece, or step the existing line up by one.
        kg products need a weight or an amount; repeated adds accumulate weight.

        Returns:
            CartLine: the affected line
        """
        name, unit, price = self._product_fields(product)
        index = self.find(name, unit)

        if unit == UNIT_PCS:
            if index is None:
                line = CartLine(name, unit, price, qty=1)
                self.lines.append(line)
                return line
            line = self.lines[index]
            line.qty += 1
            return line

        added = resolve_weight(price, weight, amount)
        if index is None:
            line = CartLine(name, unit, price, weight=added)
            self.lines.append(line)
            return line
        line = self.lines[index]
        line.weight = round_weight(line.weight + added)
        return line

    def change_qty(self, index, delta):
        """Step a pcs line up or down; never below 1"""
        line = self._line(index)
        if line.unit != UNIT_PCS:
            raise ValidationError("Quantity stepping is only for pcs items")
        line.qty = max(1, line.qty + int(delta))
        return line

    def set_weight(self, index, weight=None, amount=None):
        """Replace the weight of a kg line"""
        line = self._line(index)
        if line.unit != UNIT_KG:
            raise ValidationError("Weight can only be set on kg items")
        line.weight = resolve_weight(line.price, weight, amount)
        return line

    def remove(self, index):
        line = self._line(index)
        self.lines.remove(line)
        return line

    def clear(self):
        self.lines = []

    @property
    def subtotal(self):
        return round_money(sum((line.total for line in self.lines), ZERO))

    def items(self):
        return [line.to_item() for line in self.lines]

    def totals(self, discount=0, cash=None):
        """
        Payable figures for the cart.

        Raises:
            ValidationError: discount negative or above subtotal
        """
        subtotal = self.subtotal
        discount = ZERO if discount in (None, '') else round_money(to_decimal(discount, 'discount'))
        if discount < 0:
            raise ValidationError("Discount cannot be negative")
        if discount > subtotal:
            raise ValidationError("Discount cannot exceed subtotal")

        total = round_money(max(ZERO, subtotal - discount))
        result = {'subtotal': subtotal, 'discount': discount, 'total': total}
        if cash not in (None, ''):
            cash = round_money(to_decimal(cash, 'cash'))
            result['cash'] = cash
            result['change'] = round_money(cash - total)
        return result

    def checkout_totals(self, discount=0, cash=None):
        """Totals for a checkout; the cart must be non-empty and cash must cover the total"""
        if self.is_empty:
            raise ValidationError("Cart is empty")
        if cash in (None, ''):
            raise ValidationError("Cash amount is required")
        result = self.totals(discount, cash)
        if result['cash'] < result['total']:
            raise ValidationError("Insufficient cash")
        return result

    def to_state(self):
        return [line.to_state() for line in self.lines]

    @classmethod
    def from_state(cls, state):
        return cls([CartLine.from_state(s) for s in state])

    def to_dict(self):
        return {
            'items': [dict(line.to_item(), index=i) for i, line in enumerate(self.lines)],
            'subtotal': float(self.subtotal),
        }
