"""
Tests for the lending ledger.
"""

import pytest

from tindapos.errors import AuthorizationError, InvariantViolation, ValidationError
from tindapos.session import PosSession


@pytest.fixture
def lending_200(services, cashier_session, open_shift, catalog):
    """Maria borrows 10 x Rice (100) and 2 kg Tomato (100): total 200."""
    cart = cashier_session.lending_cart
    for _ in range(10):
        cart.add_product(catalog['Rice'])
    cart.add_product(catalog['Tomato'], weight='2')
    return services.lending.save(cashier_session, 'Maria')['lending']


class TestSaveLending:

    def test_save_records_open_lending(self, services, cashier_session, lending_200):
        stored = services.store.get('lendings', lending_200['id'])
        assert stored['borrowerName'] == 'Maria'
        assert stored['total'] == 200.0
        assert stored['returned'] is False
        assert stored['payments'] == []
        assert all(item['paid'] is False for item in stored['items'])
        assert cashier_session.lending_cart.is_empty

    def test_borrower_name_and_items_required(self, services, cashier_session, catalog):
        with pytest.raises(ValidationError):
            services.lending.save(cashier_session, 'Maria')
        cashier_session.lending_cart.add_product(catalog['Rice'])
        with pytest.raises(ValidationError):
            services.lending.save(cashier_session, '  ')


class TestRepayment:

    def test_partial_then_full_payment(self, services, cashier_session, open_shift, lending_200):
        """Owes 200, pays 80 -> 120 outstanding; pays the rest -> returned."""
        partial = services.lending.pay_partial(cashier_session, lending_200['id'], '80', [0])
        assert partial['balance'] == 120.0
        stored = services.store.get('lendings', lending_200['id'])
        assert stored['returned'] is False
        assert stored['items'][0]['paid'] is True
        assert stored['items'][1]['paid'] is False
        assert stored['payments'][0]['amount'] == 80.0
        assert stored['payments'][0]['shiftId'] == open_shift['id']
        assert stored['payments'][0]['cashier'] == 'Anna'

        full = services.lending.pay_full(cashier_session, lending_200['id'])
        assert full['balance'] == 0.0
        assert full['payment']['amount'] == 120.0
        stored = services.store.get('lendings', lending_200['id'])
        assert stored['returned'] is True
        assert all(item['paid'] for item in stored['items'])

    def test_payments_are_folded_into_shift_income(self, services, cashier_session, open_shift, lending_200):
        services.lending.pay_partial(cashier_session, lending_200['id'], '80')
        services.lending.pay_full(cashier_session, lending_200['id'])

        sales = services.store.query('sales', [('shiftId', '==', open_shift['id'])])
        assert sorted(s['total'] for s in sales) == [80.0, 120.0]
        assert sales[0]['items'][0]['name'] == 'Lending Payment - Maria'
        assert sales[0]['discount'] == 0
        assert sales[0]['change'] == 0
        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == 200

    def test_partial_payment_reaching_zero_marks_returned(self, services, cashier_session, lending_200):
        services.lending.pay_partial(cashier_session, lending_200['id'], '150')
        services.lending.pay_partial(cashier_session, lending_200['id'], '50')
        assert services.store.get('lendings', lending_200['id'])['returned'] is True

    def test_partial_amount_bounds(self, services, cashier_session, lending_200):
        for amount in ('0', '-5', '200.01', 'ten'):
            with pytest.raises(ValidationError):
                services.lending.pay_partial(cashier_session, lending_200['id'], amount)

    def test_invalid_item_index(self, services, cashier_session, lending_200):
        with pytest.raises(ValidationError):
            services.lending.pay_partial(cashier_session, lending_200['id'], '10', [7])

    def test_full_payment_of_settled_lending_rejected(self, services, cashier_session, lending_200):
        services.lending.pay_full(cashier_session, lending_200['id'])
        with pytest.raises(InvariantViolation):
            services.lending.pay_full(cashier_session, lending_200['id'])

    def test_repayments_during_outage_are_queued_and_replayed(self, services, cashier_session, open_shift,
                                                              lending_200, outage):
        with outage:
            partial = services.lending.pay_partial(cashier_session, lending_200['id'], '80', [0])
            full = services.lending.pay_full(cashier_session, lending_200['id'])
            borrowers = services.lending.borrowers()

        assert partial['outcome'].queued
        assert partial['balance'] == 120.0
        assert full['payment']['amount'] == 120.0
        assert full['balance'] == 0.0
        assert borrowers == []

        services.sync.refresh_connectivity()

        stored = services.store.get('lendings', lending_200['id'])
        assert stored['returned'] is True
        assert [p['amount'] for p in stored['payments']] == [80.0, 120.0]
        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == 200
        assert len(services.store.query('sales')) == 2

    def test_payment_requires_open_shift(self, services, lending_200):
        ben = PosSession('ben', 'cashier', 'Ben')
        with pytest.raises(AuthorizationError):
            services.lending.pay_full(ben, lending_200['id'])


class TestBorrowerViews:

    def test_borrowers_summary(self, services, cashier_session, catalog, lending_200):
        cashier_session.lending_cart.add_product(catalog['Soap'])
        services.lending.save(cashier_session, 'Jose')
        services.lending.pay_partial(cashier_session, lending_200['id'], '80')

        borrowers = {b['borrowerName']: b for b in services.lending.borrowers()}
        assert borrowers['Maria']['unpaid'] == 120.0
        assert borrowers['Maria']['paid'] == 80.0
        assert borrowers['Jose']['unpaid'] == 25.0

    def test_settled_borrowers_are_left_out(self, services, cashier_session, lending_200):
        services.lending.pay_full(cashier_session, lending_200['id'])
        assert services.lending.borrowers() == []

    def test_borrower_details(self, services, cashier_session, lending_200):
        services.lending.pay_partial(cashier_session, lending_200['id'], '100', [0])
        details = services.lending.borrower_details('Maria')
        assert len(details) == 1
        assert details[0]['balance'] == 100.0
        assert details[0]['unpaid_items'] == [1]
