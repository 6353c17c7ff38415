import pytest
from sqlalchemy import create_engine, text

from stockroom.extensions import db
from stockroom.models import Issuance
from stockroom.services import issuance_workflow, stock_ledger
from stockroom.services.errors import InsufficientStockError, LineValidationError, MissingVariantError

from .factories import line, make_issuance, stock_of


def test_quantity_reads_row_and_missing_row_is_zero(app, seed):
    with app.app_context():
        assert stock_ledger.quantity(seed.vest_id, 'M') == 3
        assert stock_ledger.quantity(seed.vest_id, ' L ') == 10
        assert stock_ledger.quantity(seed.boots_id, '44') == 0


def test_resolve_batch_returns_every_requested_pair(app, seed):
    with app.app_context():
        levels = stock_ledger.resolve_batch({
            (seed.vest_id, 'M'),
            (seed.shirt_id, 'S'),
            (seed.boots_id, '44'),
        })

        assert levels == {
            (seed.vest_id, 'M'): 3,
            (seed.shirt_id, 'S'): 20,
            (seed.boots_id, '44'): 0,
        }
        assert stock_ledger.resolve_batch(set()) == {}


def test_adjust_credit_and_debit(app, seed):
    with app.app_context():
        assert stock_ledger.adjust(seed.vest_id, 'L', 5) == 5
        assert stock_ledger.adjust(seed.vest_id, 'L', -15) == -15
        db.session.commit()

        assert stock_of(seed.vest_id, 'L') == 0


def test_adjust_rejects_debit_below_zero_and_leaves_row_unchanged(app, seed):
    with app.app_context():
        with pytest.raises(InsufficientStockError) as exc:
            stock_ledger.adjust(seed.vest_id, 'M', -5)
        db.session.rollback()

        assert stock_of(seed.vest_id, 'M') == 3
        shortfall = exc.value.shortfalls[0]
        assert (shortfall.needed, shortfall.available) == (5, 3)
        assert exc.value.messages == ['Safety Vest (M): needs 5, has 3']


def test_adjust_missing_row_skips_by_default(app, seed):
    with app.app_context():
        assert stock_ledger.adjust(seed.boots_id, '44', 3) == 0
        assert stock_ledger.quantity(seed.boots_id, '44') == 0


def test_adjust_missing_row_fails_under_fail_policy(app, seed):
    app.config['MISSING_VARIANT_POLICY'] = 'fail'
    with app.app_context():
        with pytest.raises(MissingVariantError) as exc:
            stock_ledger.adjust(seed.boots_id, '44', 3)
        assert 'Safety Boots (44)' in exc.value.messages[0]


def test_adjust_many_applies_in_sorted_order_and_reports_applied(app, seed):
    with app.app_context():
        applied = stock_ledger.adjust_many({
            (seed.shirt_id, 'S'): -4,
            (seed.vest_id, 'L'): 2,
            (seed.boots_id, '44'): 1,
            (seed.vest_id, 'M'): 0,
        })
        db.session.commit()

        assert applied == {(seed.shirt_id, 'S'): -4, (seed.vest_id, 'L'): 2}
        assert stock_of(seed.shirt_id, 'S') == 16
        assert stock_of(seed.vest_id, 'L') == 12


def test_adjust_refreshes_loaded_variant(app, seed):
    with app.app_context():
        from stockroom.models import StockVariant

        variant = StockVariant.query.filter_by(item_id=seed.vest_id, size_label='L').one()
        assert variant.quantity == 10
        stock_ledger.adjust(seed.vest_id, 'L', -4)
        assert variant.quantity == 6


def test_ensure_variant_creates_row_once(app, seed):
    with app.app_context():
        variant = stock_ledger.ensure_variant(seed.boots_id, '44', 5)
        db.session.commit()
        assert variant.quantity == 5

        with pytest.raises(LineValidationError):
            stock_ledger.ensure_variant(seed.boots_id, '44')
        with pytest.raises(LineValidationError):
            stock_ledger.ensure_variant(seed.boots_id, '46', -1)


def test_snapshot_collects_every_shortfall(app, seed):
    with app.app_context():
        snapshot = stock_ledger.LedgerSnapshot.capture([(seed.vest_id, 'M'), (seed.shirt_id, 'M')])
        needs = {(seed.vest_id, 'M'): 5, (seed.shirt_id, 'M'): 7, (seed.boots_id, '44'): 1}
        snapshot.extend(needs)

        with pytest.raises(InsufficientStockError) as exc:
            snapshot.require(needs)

        assert exc.value.messages == [
            'Safety Vest (M): needs 5, has 3',
            'Work Shirt (M): needs 7, has 6',
            'Safety Boots (44): needs 1, has 0',
        ]


def test_snapshot_apply_tracks_levels(app, seed):
    with app.app_context():
        snapshot = stock_ledger.LedgerSnapshot.capture([(seed.vest_id, 'L')])
        snapshot.apply({(seed.vest_id, 'L'): -7})
        assert snapshot.available((seed.vest_id, 'L')) == 3
        assert snapshot.shortfalls({(seed.vest_id, 'L'): 4})[0].available == 3


def test_stock_options_cached_until_adjust(app, seed):
    with app.app_context():
        options = stock_ledger.stock_options(seed.vest_id)
        assert [(o['size'], o['quantity']) for o in options] == [('L', 10), ('M', 3)]

        stock_ledger.adjust(seed.vest_id, 'L', -1)
        db.session.commit()

        options = stock_ledger.stock_options(seed.vest_id)
        assert options[0]['quantity'] == 9
        assert options[0]['label'] == 'L (9 in stock)'


def test_stale_snapshot_cannot_oversell_a_row_changed_elsewhere(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(seed.vest_id, 'M', 3)])
        snapshot = stock_ledger.LedgerSnapshot.capture([(seed.vest_id, 'M')])
        assert snapshot.available((seed.vest_id, 'M')) == 3

        # A second request on its own connection takes two units first.
        other = create_engine(app.config['SQLALCHEMY_DATABASE_URI'])
        try:
            with other.begin() as conn:
                conn.execute(text(
                    "UPDATE item_variants SET quantity = quantity - 2 WHERE item_id = :item AND size_label = 'M'"
                ), {'item': seed.vest_id})
        finally:
            other.dispose()

        with pytest.raises(InsufficientStockError) as exc:
            issuance_workflow.release(issuance.id, snapshot=snapshot)

        assert exc.value.messages == ['Safety Vest (M): needs 3, has 1']
        assert stock_of(seed.vest_id, 'M') == 1
        assert db.session.get(Issuance, issuance.id).status == 'pending'
        assert snapshot.available((seed.vest_id, 'M')) == 3
