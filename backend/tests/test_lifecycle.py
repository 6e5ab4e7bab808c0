"""
Document lifecycle tests.

PENDING -> APPROVED and PENDING -> CANCELLED are the only legal moves;
APPROVED and CANCELLED are terminal.
"""

from types import SimpleNamespace

import pytest

from app.services import lifecycle_service
from app.services.lifecycle_service import LifecycleError
from app.validation import ConflictError


def _doc(status, ref="SAJM-00001"):
    return SimpleNamespace(status=status, ref=ref, approved_by=None, approved_at=None,
                           deleted_by=None, deleted_at=None, del_reason=None)


class TestTransitions:

    @pytest.mark.parametrize(
        "from_status,to_status,allowed",
        [
            ("PENDING", "APPROVED", True),
            ("PENDING", "CANCELLED", True),
            ("APPROVED", "CANCELLED", False),
            ("APPROVED", "PENDING", False),
            ("APPROVED", "APPROVED", False),
            ("CANCELLED", "APPROVED", False),
            ("CANCELLED", "PENDING", False),
        ],
    )
    def test_transition_table(self, from_status, to_status, allowed):
        assert lifecycle_service.can_transition(from_status, to_status) is allowed

    def test_unknown_status_rejected(self):
        with pytest.raises(LifecycleError):
            lifecycle_service.can_transition("DRAFT", "APPROVED")

    def test_lifecycle_error_is_a_conflict(self):
        assert issubclass(LifecycleError, ConflictError)


class TestRequireTransition:

    def test_second_approval_names_the_document(self):
        doc = _doc("APPROVED")
        with pytest.raises(LifecycleError, match="Stock adjustment SAJM-00001 is already approved"):
            lifecycle_service.require_transition(doc, "APPROVED", "Stock adjustment")

    def test_cancelled_document_cannot_be_approved(self):
        doc = _doc("CANCELLED", ref="INV-00003")
        with pytest.raises(LifecycleError, match="Invoice INV-00003 is cancelled"):
            lifecycle_service.require_transition(doc, "APPROVED", "Invoice")

    def test_only_pending_is_editable(self):
        assert lifecycle_service.can_edit(_doc("PENDING"))
        assert not lifecycle_service.can_edit(_doc("APPROVED"))
        with pytest.raises(LifecycleError, match="cannot be edited once approved"):
            lifecycle_service.require_editable(_doc("APPROVED"), "Stock request")


class TestMarkers:

    def test_mark_approved_stamps_actor(self):
        doc = _doc("PENDING")
        lifecycle_service.mark_approved(doc, 7)
        assert doc.status == "APPROVED"
        assert doc.approved_by == 7
        assert doc.approved_at is not None

    def test_mark_cancelled_is_a_soft_delete(self):
        doc = _doc("PENDING")
        lifecycle_service.mark_cancelled(doc, 7, "entered twice")
        assert doc.status == "CANCELLED"
        assert doc.deleted_by == 7
        assert doc.deleted_at is not None
        assert doc.del_reason == "entered twice"
