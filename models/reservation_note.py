"""
Reservation notes.

System notes record every status change and payment event on a request as
short markdown lines; staff notes are free text added by managers.
"""

from database import get_db, write_transaction


def add_note(reservation_id: int, content: str, note_type: str = 'system',
             author_id: int | None = None) -> int:
    """
    Append a note to a reservation.

    Args:
        reservation_id: Reservation ID
        content: Markdown text
        note_type: 'system' or 'staff'
        author_id: User who caused the note

    Returns:
        New note ID
    """
    with write_transaction() as cursor:
        cursor.execute('''
            INSERT INTO reservation_notes (reservation_id, content, note_type, author_id)
            VALUES (?, ?, ?, ?)
        ''', (reservation_id, content, note_type, author_id))
        return cursor.lastrowid


def get_notes(reservation_id: int) -> list:
    """Get notes for a reservation, oldest first."""
    cursor = get_db().cursor()
    cursor.execute('''
        SELECT n.*, u.username as author_username, u.full_name as author_name
        FROM reservation_notes n
        LEFT JOIN users u ON n.author_id = u.id
        WHERE n.reservation_id = ?
        ORDER BY n.created_at, n.id
    ''', (reservation_id,))
    return [dict(row) for row in cursor.fetchall()]
