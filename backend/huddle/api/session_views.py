"""Session view builders used by REST and WS responses."""

from __future__ import annotations

from huddle.sessions.models import Member
from huddle.sessions.models import Message
from huddle.sessions.models import Session


def member_detail(member: Member) -> dict[str, object]:
    return {
        "userId": member.user_id,
        "username": member.username,
        "isHost": member.is_host,
        "joinedAt": member.joined_at,
    }


def member_event(member: Member, *, timestamp: int) -> dict[str, object]:
    return {
        "userId": member.user_id,
        "username": member.username,
        "isHost": member.is_host,
        "timestamp": timestamp,
    }


def message_detail(message: Message) -> dict[str, object]:
    # `message` mirrors `text` for clients of the older wire format.
    return {
        "messageId": message.message_id,
        "userId": message.user_id,
        "username": message.username,
        "text": message.text,
        "message": message.text,
        "timestamp": message.timestamp,
    }


def session_state(session: Session) -> dict[str, object]:
    return {
        "members": [member_detail(member) for member in session.members],
        "messages": [message_detail(message) for message in session.messages],
        "status": session.status,
        "hostName": session.host_name,
    }


def session_info(session: Session) -> dict[str, object]:
    members = list(session.members)
    return {
        "code": session.code,
        "hostName": session.host_name,
        "status": session.status,
        "memberCount": len(members),
        "members": [
            {
                "username": member.username,
                "isHost": member.is_host,
                "joinedAt": member.joined_at,
            }
            for member in members
        ],
        "createdAt": session.created_at,
    }
