"""
POS Session
Per-user selling context: who is acting, their carts and the shift they sell
under. Rebuilt from the Flask session on every request and handed explicitly to
the services.
"""

from tindapos.documents import ROLE_ADMIN
from tindapos.services.cart import Cart
from tindapos.utils.helpers import parse_datetime

SESSION_KEY = 'pos_state'


class PosSession:

    def __init__(self, username, role, employee_name=None, cart=None, lending_cart=None, shift=None):
        self.username = username
        self.role = role
        self.employee_name = (employee_name or username or '').strip()
        self.cart = cart or Cart()
        self.lending_cart = lending_cart or Cart()
        # snapshot of the shift this session sells under: {id, cashierName, startTime, totalIncome}
        self.shift = shift

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def shift_id(self):
        return self.shift['id'] if self.shift else None

    @classmethod
    def for_user(cls, user):
        """Fresh session for a logged-in AccountUser"""
        return cls(user.username, user.role, user.employee_name)

    def to_state(self):
        shift = None
        if self.shift:
            shift = dict(self.shift)
            if shift.get('startTime') is not None and not isinstance(shift['startTime'], str):
                shift['startTime'] = shift['startTime'].isoformat()
        return {
            'username': self.username,
            'role': self.role,
            'employee_name': self.employee_name,
            'cart': self.cart.to_state(),
            'lending_cart': self.lending_cart.to_state(),
            'shift': shift,
        }

    @classmethod
    def from_state(cls, state):
        shift = state.get('shift')
        if shift and shift.get('startTime'):
            shift = dict(shift, startTime=parse_datetime(shift['startTime']))
        return cls(
            state.get('username'),
            state.get('role'),
            state.get('employee_name'),
            cart=Cart.from_state(state.get('cart') or []),
            lending_cart=Cart.from_state(state.get('lending_cart') or []),
            shift=shift,
        )

    def __repr__(self):
        return f'<PosSession {self.username} ({self.role}) shift={self.shift_id}>'


def load_pos_session(flask_session, user):
    """PosSession for the logged-in user, restored from the cookie session when present"""
    state = flask_session.get(SESSION_KEY)
    if state and state.get('username') == user.username:
        return PosSession.from_state(state)
    return PosSession.for_user(user)


def save_pos_session(flask_session, pos_session):
    flask_session[SESSION_KEY] = pos_session.to_state()
