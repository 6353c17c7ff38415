import pytest

from stockroom.extensions import db
from stockroom.models import Issuance, IssuanceLog, IssuanceStatus
from stockroom.services import issuance_workflow
from stockroom.services.errors import (
    EntityNotFoundError,
    InsufficientStockError,
    InvalidTransitionError,
    LineValidationError,
)

from .factories import line, make_issuance, stock_of


def _actions(issuance_id):
    return [log.action for log in IssuanceLog.query.filter_by(issuance_id=issuance_id).order_by(IssuanceLog.id)]


def test_release_with_shortfall_changes_nothing(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'M', 5)])

        with pytest.raises(InsufficientStockError) as exc:
            issuance_workflow.release(issuance.id)

        issuance = db.session.get(Issuance, issuance.id)
        assert issuance.status == 'pending'
        assert issuance.released_at is None
        assert issuance.lines[0].released_quantity is None
        assert stock_of(42, 'M') == 3
        assert exc.value.messages == ['Safety Vest (M): needs 5, has 3']
        assert _actions(issuance.id) == ['created']


def test_release_reports_every_short_line_and_debits_none(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [
            line(seed.shirt_id, 'S', 2),
            line(42, 'M', 4),
            line(seed.shirt_id, 'M', 7),
        ])

        with pytest.raises(InsufficientStockError) as exc:
            issuance_workflow.release(issuance.id)

        assert len(exc.value.shortfalls) == 2
        assert stock_of(seed.shirt_id, 'S') == 20


def test_release_checks_duplicate_lines_together(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'M', 2), line(42, 'M', 2)])

        with pytest.raises(InsufficientStockError) as exc:
            issuance_workflow.release(issuance.id)

        assert exc.value.messages == ['Safety Vest (M): needs 4, has 3']
        assert stock_of(42, 'M') == 3


def test_release_debits_lines_and_records_audit(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4), line(seed.shirt_id, 'S', 5)])

        issuance_workflow.release(issuance.id, performed_by='Dana')

        issuance = db.session.get(Issuance, issuance.id)
        assert issuance.status == 'released'
        assert issuance.released_at is not None
        assert issuance.status_date == issuance.released_at
        assert [l.released_quantity for l in issuance.lines] == [4, 5]
        assert stock_of(42, 'L') == 6
        assert stock_of(seed.shirt_id, 'S') == 15

        log = IssuanceLog.query.filter_by(issuance_id=issuance.id, action='released').one()
        assert log.performed_by == 'Dana'


def test_release_then_full_return_restores_ledger(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4), line(42, 'M', 3)])

        issuance_workflow.release(issuance.id)
        assert (stock_of(42, 'L'), stock_of(42, 'M')) == (6, 0)

        issuance_workflow.return_issuance(issuance.id)

        issuance = db.session.get(Issuance, issuance.id)
        assert issuance.status == 'returned'
        assert issuance.returned_at is not None
        assert (stock_of(42, 'L'), stock_of(42, 'M')) == (10, 3)
        assert [l.remaining_quantity for l in issuance.lines] == [0, 0]


def test_partial_return_caps_at_released_quantity(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4), line(seed.shirt_id, 'S', 5)])
        issuance_workflow.release(issuance.id)
        first, second = [l.id for l in db.session.get(Issuance, issuance.id).lines]

        issuance_workflow.return_issuance(issuance.id, quantities={str(first): 1, second: 50})

        issuance = db.session.get(Issuance, issuance.id)
        assert stock_of(42, 'L') == 7
        assert stock_of(seed.shirt_id, 'S') == 20
        assert [l.remaining_quantity for l in issuance.lines] == [3, 0]


def test_return_without_restoring_stock(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4)])
        issuance_workflow.release(issuance.id)

        issuance_workflow.return_issuance(issuance.id, restore_stock=False)

        issuance = db.session.get(Issuance, issuance.id)
        assert issuance.status == 'returned'
        assert stock_of(42, 'L') == 6
        assert issuance.lines[0].remaining_quantity == 4


def test_return_rejects_negative_override(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4)])
        issuance_workflow.release(issuance.id)
        line_id = db.session.get(Issuance, issuance.id).lines[0].id

        with pytest.raises(LineValidationError):
            issuance_workflow.return_issuance(issuance.id, quantities={line_id: -1})

        assert db.session.get(Issuance, issuance.id).status == 'released'
        assert stock_of(42, 'L') == 6


def test_issue_and_cancel_have_no_ledger_effect(app, seed):
    with app.app_context():
        issued = make_issuance(seed.site_id, [line(42, 'L', 2)])
        cancelled = make_issuance(seed.site_id, [line(42, 'L', 2)])

        issuance_workflow.release(issued.id)
        issuance_workflow.issue(issued.id)
        issuance_workflow.cancel(cancelled.id)

        assert db.session.get(Issuance, issued.id).status == 'issued'
        assert db.session.get(Issuance, cancelled.id).cancelled_at is not None
        assert stock_of(42, 'L') == 8


@pytest.mark.parametrize('start, call', [
    ('pending', 'issue'),
    ('pending', 'return_issuance'),
    ('released', 'release'),
    ('released', 'cancel'),
    ('cancelled', 'release'),
])
def test_transitions_outside_the_graph_are_rejected(app, seed, start, call):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 1)], status=start)
        before = stock_of(42, 'L')

        with pytest.raises(InvalidTransitionError):
            getattr(issuance_workflow, call)(issuance.id)

        assert db.session.get(Issuance, issuance.id).status == start
        assert stock_of(42, 'L') == before


def test_create_released_debits_once(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 3)], status='released')

        assert issuance.status == 'released'
        assert issuance.pending_at is not None
        assert issuance.released_at is not None
        assert stock_of(42, 'L') == 7
        assert _actions(issuance.id) == ['created']


def test_create_with_shortfall_persists_nothing(app, seed):
    with app.app_context():
        with pytest.raises(InsufficientStockError):
            make_issuance(seed.site_id, [line(42, 'L', 3), line(42, 'M', 9)], status='issued')

        assert Issuance.query.count() == 0
        assert IssuanceLog.query.count() == 0
        assert stock_of(42, 'L') == 10


def test_create_rejects_returned_status_and_bad_lines(app, seed):
    with app.app_context():
        with pytest.raises(LineValidationError):
            make_issuance(seed.site_id, [line(42, 'L', 1)], status='returned')

        with pytest.raises(LineValidationError) as exc:
            make_issuance(seed.site_id, [
                {'item_id': None, 'size': 'M', 'quantity': 1},
                {'item_id': 999, 'size': '', 'quantity': 0},
            ])
        assert len(exc.value.messages) == 4

        with pytest.raises(LineValidationError):
            make_issuance(seed.site_id, [])


def test_edit_to_issued_and_back_moves_stock_exactly_once(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4)])

        issuance_workflow.update_issuance(issuance.id, status='issued')
        assert stock_of(42, 'L') == 6

        issuance_workflow.update_issuance(issuance.id, status='issued')
        assert stock_of(42, 'L') == 6

        issuance_workflow.update_issuance(issuance.id, status='pending')
        issuance = db.session.get(Issuance, issuance.id)
        assert issuance.status == 'pending'
        assert issuance.issued_at is None
        assert issuance.lines[0].released_quantity is None
        assert stock_of(42, 'L') == 10

        issuance_workflow.update_issuance(issuance.id, status='released')
        assert stock_of(42, 'L') == 6
        issuance_workflow.update_issuance(issuance.id, status='issued')
        assert stock_of(42, 'L') == 6


def test_edit_released_to_returned_restores_everything(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4)], status='released')

        issuance_workflow.update_issuance(issuance.id, status='returned')

        assert db.session.get(Issuance, issuance.id).status == 'returned'
        assert stock_of(42, 'L') == 10


def test_edit_rejects_status_outside_edit_edges(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4)], status='cancelled')

        with pytest.raises(InvalidTransitionError):
            issuance_workflow.update_issuance(issuance.id, status='released')
        assert stock_of(42, 'L') == 10


def test_lines_replaced_only_while_pending(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4)])

        issuance_workflow.update_issuance(
            issuance.id,
            fields={'issued_to': 'Crew B'},
            lines=[line(seed.shirt_id, 'S', 1), line(seed.shirt_id, 'M', 2)],
        )
        issuance = db.session.get(Issuance, issuance.id)
        assert issuance.issued_to == 'Crew B'
        assert issuance.line_summary == ['Work Shirt (S) - 1', 'Work Shirt (M) - 2']

        issuance_workflow.release(issuance.id)
        with pytest.raises(LineValidationError):
            issuance_workflow.update_issuance(issuance.id, lines=[line(42, 'L', 1)])
        assert len(db.session.get(Issuance, issuance.id).lines) == 2


def test_perform_action_reports_results(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'M', 5)])

        result = issuance_workflow.perform_issuance_action(issuance.id, 'release')
        assert result.success is False
        assert result.error_type == 'insufficient_stock'
        assert result.messages == ['Safety Vest (M): needs 5, has 3']

        issuance_workflow.update_issuance(issuance.id, lines=[line(42, 'M', 2)])
        result = issuance_workflow.perform_issuance_action(issuance.id, 'release')
        assert result.success is True
        assert result.status == 'released'

        result = issuance_workflow.perform_issuance_action(issuance.id, 'return', restore_stock=False)
        assert result.messages == ['Issuance returned without restoring stock.']

        assert issuance_workflow.perform_issuance_action(issuance.id, 'explode').error_type == 'validation'
        assert issuance_workflow.perform_issuance_action(9999, 'cancel').error_type == 'not_found'


def test_status_counts(app, seed):
    with app.app_context():
        make_issuance(seed.site_id, [line(42, 'L', 1)])
        make_issuance(seed.site_id, [line(42, 'L', 1)])
        make_issuance(seed.site_id, [line(42, 'L', 1)], status='released')

        counts = issuance_workflow.issuance_status_counts()
        assert counts['all'] == 3
        assert counts['pending'] == 2
        assert counts['released'] == 1
        assert counts['cancelled'] == 0


def test_unknown_issuance_raises_not_found(app, seed):
    with app.app_context():
        with pytest.raises(EntityNotFoundError):
            issuance_workflow.release(12345)


def test_status_enum_marks_stock_consuming_states():
    assert IssuanceStatus.RELEASED.consumes_stock
    assert IssuanceStatus.ISSUED.consumes_stock
    assert not IssuanceStatus.RETURNED.consumes_stock


@pytest.mark.parametrize('policy', ['skip', 'fail'])
def test_release_against_missing_row_is_short_under_either_policy(app, seed, policy):
    app.config['MISSING_VARIANT_POLICY'] = policy
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(seed.boots_id, '44', 2)])

        with pytest.raises(InsufficientStockError) as exc:
            issuance_workflow.release(issuance.id)

        assert exc.value.messages == ['Safety Boots (44): needs 2, has 0']
        issuance = db.session.get(Issuance, issuance.id)
        assert issuance.status == 'pending'
        assert issuance.lines[0].released_quantity is None


@pytest.mark.parametrize('policy', ['skip', 'fail'])
def test_create_released_against_missing_row_persists_nothing(app, seed, policy):
    app.config['MISSING_VARIANT_POLICY'] = policy
    with app.app_context():
        with pytest.raises(InsufficientStockError):
            make_issuance(seed.site_id, [line(42, 'L', 1), line(seed.boots_id, '44', 1)], status='released')

        assert Issuance.query.count() == 0
        assert stock_of(42, 'L') == 10


def test_edit_back_to_pending_reports_restored_stock(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 4)], status='released')

        result = issuance_workflow.perform_issuance_edit(issuance.id, status='pending')
        assert result.success is True
        assert result.messages == ['Issuance moved back to pending and stock restored.']
        assert stock_of(42, 'L') == 10

        result = issuance_workflow.perform_issuance_edit(issuance.id, fields={'note': 'recount'})
        assert result.messages == ['Issuance updated.']

        result = issuance_workflow.perform_issuance_edit(issuance.id, status='returned')
        assert result.error_type == 'invalid_transition'


def test_unknown_status_is_not_reported_as_a_create_error(app, seed):
    with app.app_context():
        issuance = make_issuance(seed.site_id, [line(42, 'L', 1)])

        with pytest.raises(LineValidationError) as exc:
            issuance_workflow.update_issuance(issuance.id, status='lost')
        assert exc.value.messages == ['Unknown status: lost.']

        with pytest.raises(LineValidationError) as exc:
            issuance_workflow.list_issuances('lost')
        assert exc.value.messages == ['Unknown status: lost.']

        with pytest.raises(LineValidationError) as exc:
            make_issuance(seed.site_id, [line(42, 'L', 1)], status='lost')
        assert exc.value.messages == ['Cannot create a record with status lost.']
