"""Tests for comments, history, solutions and attachments of a ticket (`itsm.repositories.ticket_details`)."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from itsm.models.tickets import TicketAttachment, TicketComment, TicketHistory, TicketSolution
from itsm.repositories.ticket_details import (
    TicketAttachmentRepository,
    TicketCommentRepository,
    TicketHistoryRepository,
    TicketSolutionRepository,
)


def test_comments_read_as_a_conversation(db_session, make_ticket, org):
    ticket = make_ticket()
    other = make_ticket()
    repo = TicketCommentRepository(db_session)

    first = repo.add(TicketComment(ticket_id=ticket.id, user_id=org.bob.id, comment="Still broken"))
    first.created_at = datetime(2024, 3, 1, 9)
    note = repo.add(TicketComment(ticket_id=ticket.id, user_id=org.alice.id, comment="Toner", is_internal=True))
    note.created_at = datetime(2024, 3, 1, 10)
    reply = repo.add(TicketComment(ticket_id=ticket.id, user_id=org.alice.id, comment="Fixed"))
    reply.created_at = datetime(2024, 3, 1, 11)
    elsewhere = repo.add(TicketComment(ticket_id=other.id, user_id=org.bob.id, comment="Same here"))
    elsewhere.created_at = datetime(2024, 3, 2)
    db_session.flush()

    assert repo.list_for_ticket(ticket.id) == [first, note, reply]
    assert repo.list_internal_for_ticket(ticket.id) == [note]
    assert repo.list_public_for_ticket(ticket.id) == [first, reply]
    assert repo.list_for_user(org.bob.id) == [elsewhere, first]
    assert repo.list_for_ticket(ticket.id)[0].user.role is org.role


def test_deleted_comments_are_hidden(db_session, make_ticket, org):
    ticket = make_ticket()
    repo = TicketCommentRepository(db_session)
    comment = repo.add(TicketComment(ticket_id=ticket.id, user_id=org.bob.id, comment="Oops"))

    repo.delete(comment.id)

    assert repo.list_for_ticket(ticket.id) == []
    assert repo.find(comment.id, include_deleted=True) is comment


def test_history_records_values_as_text(db_session, make_ticket, org):
    ticket = make_ticket()
    repo = TicketHistoryRepository(db_session)

    created = repo.record(ticket.id, org.alice.id, "created", description="Ticket opened")
    moved = repo.record(
        ticket.id, org.alice.id, "status_changed", field_name="status", old_value="ouvert", new_value="en_cours"
    )
    estimated = repo.record(ticket.id, org.bob.id, "updated", field_name="estimated_time", old_value=None, new_value=90)
    db_session.expire(estimated)

    assert estimated.new_value == "90"
    assert estimated.old_value is None
    assert repo.list_for_ticket(ticket.id) == [created, moved, estimated]
    assert repo.list_by_action(ticket.id, "status_changed") == [moved]
    assert repo.list_for_user(org.bob.id) == [estimated]
    assert db_session.scalar(select(TicketHistory.action).where(TicketHistory.id == moved.id)) == "status_changed"


def test_solutions_newest_first(db_session, make_ticket, org):
    ticket = make_ticket()
    repo = TicketSolutionRepository(db_session)
    old = repo.add(TicketSolution(ticket_id=ticket.id, solution="Restart the spooler", created_by_id=org.alice.id))
    old.created_at = datetime(2024, 1, 1)
    new = repo.add(TicketSolution(ticket_id=ticket.id, solution="Replace the **fuser**", created_by_id=org.alice.id))
    new.created_at = datetime(2024, 2, 1)
    db_session.flush()

    assert repo.list_for_ticket(ticket.id) == [new, old]
    assert repo.list_for_ticket(ticket.id)[0].created_by is org.alice


def test_attachments_in_gallery_order(db_session, make_ticket, org):
    ticket = make_ticket()
    repo = TicketAttachmentRepository(db_session)

    def attach(name, **fields) -> TicketAttachment:
        attachment = TicketAttachment(
            ticket_id=ticket.id, user_id=org.bob.id, file_name=name, file_path=f"/uploads/{name}", **fields
        )
        return repo.add(attachment)

    log = attach("spooler.log", mime_type="text/plain", display_order=2, file_size=2048)
    photo = attach("printer.jpg", mime_type="image/jpeg", is_image=True, display_order=1)
    screen = attach("error.png", mime_type="image/png", is_image=True, display_order=1)

    assert repo.list_for_ticket(ticket.id) == [photo, screen, log]
    assert repo.list_images_for_ticket(ticket.id) == [photo, screen]
    assert repo.primary_for_ticket(ticket.id) is photo
    assert repo.primary_for_ticket(make_ticket().id) is None
    assert set(repo.list_for_user(org.bob.id)) == {photo, screen, log}
