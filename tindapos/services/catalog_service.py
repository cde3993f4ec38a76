"""
Catalog Service
Products, categories, employees and user accounts
"""

import logging
from decimal import Decimal
from werkzeug.security import check_password_hash, generate_password_hash
from tindapos.documents import ROLES, UNITS, AccountUser, read, read_all, stamp
from tindapos.errors import InvariantViolation, NotFoundError, ValidationError
from tindapos.services.sale_service import stock_value
from tindapos.utils.helpers import money_float, round_money, to_decimal

logger = logging.getLogger(__name__)

CATEGORY_COLORS = ['#f6f7fb', '#e74c3c', '#e67e22', '#f1c40f', '#2ecc71', '#3498db', '#4b0082', '#9b59b6']


def validate_product(fields):
    """
    Check product fields and derive profit = price - capital

    Returns:
        dict: cleaned fields ready to store
    """
    name = (fields.get('name') or '').strip()
    if not name:
        raise ValidationError("Product name is required")
    unit = fields.get('unit') or 'pcs'
    if unit not in UNITS:
        raise ValidationError(f"Unit must be one of: {', '.join(UNITS)}")

    price = to_decimal(fields.get('price'), 'price')
    if price <= 0:
        raise ValidationError("Price must be greater than zero")
    capital = to_decimal(fields.get('capital', 0), 'capital')
    if capital < 0:
        raise ValidationError("Capital cannot be negative")
    stock = to_decimal(fields.get('stock', 0), 'stock')
    if stock < 0:
        raise ValidationError("Stock cannot be negative")

    return {
        'name': name,
        'unit': unit,
        'category': (fields.get('category') or '').strip(),
        'price': money_float(price),
        'capital': money_float(capital),
        'profit': money_float(round_money(price) - round_money(capital)),
        'stock': stock_value(stock),
    }


class CatalogService:

    def __init__(self, store, gateway, reader, app_config=None):
        self.store = store
        self.gateway = gateway
        self.reader = reader
        self.config = app_config or {}

    # Products

    def list_products(self, category=None, search=None):
        where = [('category', '==', category)] if category else None
        products = read_all(self.reader, 'products', where, order_by='name')
        if search:
            needle = search.strip().lower()
            products = [p for p in products if needle in (p.get('name') or '').lower()]
        return products

    def get_product(self, product_id):
        product = read(self.reader, 'products', product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def add_product(self, fields):
        product = stamp(validate_product(fields))
        outcome = self.gateway.add('products', product)
        product['id'] = outcome.doc_id
        logger.info(f"Product {product['name']} ({product['unit']}) added, {outcome.status}")
        return {'product': product, 'outcome': outcome}

    def update_product(self, product_id, fields):
        current = self.get_product(product_id)
        merged = dict(current)
        merged.update({k: v for k, v in fields.items() if v is not None})
        product = stamp(validate_product(merged))
        outcome = self.gateway.update('products', product_id, product)
        product['id'] = product_id
        return {'product': product, 'outcome': outcome}

    def delete_products(self, product_ids):
        return [self.gateway.delete('products', pid) for pid in product_ids]

    def low_stock(self, threshold=None):
        if threshold is None:
            threshold = self.config.get('LOW_STOCK_THRESHOLD', 5)
        threshold = Decimal(str(threshold))
        products = [p for p in read_all(self.reader, 'products')
                    if Decimal(str(p.get('stock') or 0)) <= threshold]
        products.sort(key=lambda p: (p.get('stock') or 0, p.get('name') or ''))
        return products

    # Categories

    def list_categories(self):
        categories = read_all(self.store, 'categories', order_by='name')
        if not categories:
            defaults = self.config.get('DEFAULT_CATEGORIES') or []
            for name in defaults:
                self.add_category(name)
            categories = read_all(self.store, 'categories', order_by='name')
        return categories

    def add_category(self, name, color=None):
        name = (name or '').strip()
        if not name:
            raise ValidationError("Category name is required")
        existing = read_all(self.store, 'categories')
        if any((c.get('name') or '').lower() == name.lower() for c in existing):
            raise InvariantViolation(f"Category {name} already exists")

        category = stamp({'name': name, 'color': color or CATEGORY_COLORS[0]})
        outcome = self.gateway.add('categories', category)
        category['id'] = outcome.doc_id
        return {'category': category, 'outcome': outcome}

    def delete_category(self, category_id):
        return self.gateway.delete('categories', category_id)

    def set_category_color(self, category_id, color=None):
        """Set a category color; without one, step to the next palette color"""
        category = read(self.store, 'categories', category_id)
        if category is None:
            raise NotFoundError("Category not found")
        if color is None:
            current = category.get('color')
            index = CATEGORY_COLORS.index(current) if current in CATEGORY_COLORS else -1
            color = CATEGORY_COLORS[(index + 1) % len(CATEGORY_COLORS)]
        outcome = self.gateway.update('categories', category_id, {'color': color})
        category['color'] = color
        return {'category': category, 'outcome': outcome}

    # Employees

    def list_employees(self):
        return read_all(self.store, 'employees', order_by='name')

    def add_employee(self, name, role):
        name = (name or '').strip()
        if not name:
            raise ValidationError("Employee name is required")
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
        if read_all(self.store, 'employees', [('name', '==', name)]):
            raise InvariantViolation(f"Employee {name} already exists")

        employee = stamp({'name': name, 'role': role, 'active': True})
        outcome = self.gateway.add('employees', employee)
        employee['id'] = outcome.doc_id
        return {'employee': employee, 'outcome': outcome}

    def delete_employee(self, employee_id):
        return self.gateway.delete('employees', employee_id)

    # Users

    def list_users(self):
        users = read_all(self.store, 'users', order_by='username')
        for user in users:
            user.pop('passwordHash', None)
        return users

    def create_user(self, username, password, role, employee_name=None):
        username = (username or '').strip()
        if not username or not password:
            raise ValidationError("Username and password are required")
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
        if read_all(self.store, 'users', [('username', '==', username)]):
            raise InvariantViolation(f"User {username} already exists")

        user = stamp({
            'username': username,
            'passwordHash': generate_password_hash(password),
            'role': role,
            'employeeName': (employee_name or username).strip(),
            'active': True,
        })
        # accounts are written straight to the store; logins must see them immediately
        user['id'] = self.store.insert('users', user)
        logger.info(f"User {username} ({role}) created")
        return AccountUser(user)

    def get_user(self, user_id):
        doc = self.store.get('users', user_id)
        return AccountUser(doc) if doc else None

    def authenticate(self, username, password):
        """Return the AccountUser for valid, active credentials, else None"""
        docs = self.store.query('users', [('username', '==', (username or '').strip())], limit=1)
        if not docs or not check_password_hash(docs[0].get('passwordHash', ''), password or ''):
            return None
        user = AccountUser(docs[0])
        return user if user.is_active else None
