import json
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

import redis

from constants import REDIS_DB, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT
from logging_config import get_logger
from redis_keys import (
    REDIS_CHAT_KEY,
    REDIS_CHAT_MESSAGES_KEY,
    REDIS_DIRECT_CHAT_KEY,
    REDIS_MESSAGE_KEY,
    REDIS_USER_CHATS_KEY,
    REDIS_USER_EMAIL_KEY,
    REDIS_USER_KEY,
    REDIS_USERS_INDEX_KEY,
)

logger = get_logger(__name__)

# Fields returned alongside a message sender
SENDER_FIELDS = ("_id", "name", "pic", "email")


class RedisBackend:
    """Document store for users, chats and messages.

    Each document is a Redis hash whose values are JSON encoded. Methods
    return documents in the shape clients expect (`_id`, camelCase keys,
    referenced users populated, never the password hash).
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        if client is None:
            logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
            client = redis.Redis(
                host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, db=REDIS_DB, decode_responses=True
            )
        self.redis_client = client

    def ping(self) -> bool:
        return bool(self.redis_client.ping())

    # -- raw documents -------------------------------------------------

    def _save(self, key: str, document: dict):
        self.redis_client.hset(key, mapping={k: json.dumps(v) for k, v in document.items()})

    def _load(self, key: str) -> Optional[dict]:
        data = self.redis_client.hgetall(key)
        if not data:
            return None
        result = {}
        for k, v in data.items():
            try:
                result[k] = json.loads(v)
            except (json.JSONDecodeError, TypeError):
                result[k] = v
        return result

    # -- users ---------------------------------------------------------

    def create_user(self, name: str, email: str, password_hash: str, pic: Optional[str] = None) -> dict:
        user_id = uuid.uuid4().hex
        email_key = REDIS_USER_EMAIL_KEY.format(email=email.lower())
        if not self.redis_client.set(email_key, user_id, nx=True):
            raise ValueError("User with this email already exists")
        now = datetime.now().isoformat()
        document = {
            "name": name,
            "email": email,
            "password": password_hash,
            "pic": pic,
            "created_at": now,
            "updated_at": now,
        }
        self._save(REDIS_USER_KEY.format(user_id=user_id), document)
        self.redis_client.sadd(REDIS_USERS_INDEX_KEY, user_id)
        logger.info(f"Created user {user_id} ({email})")
        return self.public_user({"_id": user_id, **document})

    def get_user(self, user_id: str, with_password: bool = False) -> Optional[dict]:
        if not self.user_exists(user_id):
            return None
        document = self._load(REDIS_USER_KEY.format(user_id=user_id))
        if document is None:
            return None
        document["_id"] = user_id
        return document if with_password else self.public_user(document)

    def get_user_by_email(self, email: str, with_password: bool = False) -> Optional[dict]:
        user_id = self.redis_client.get(REDIS_USER_EMAIL_KEY.format(email=email.lower()))
        if not user_id:
            return None
        return self.get_user(user_id, with_password=with_password)

    def search_users(self, keyword: Optional[str] = None, exclude_id: Optional[str] = None) -> List[dict]:
        needle = (keyword or "").strip().lower()
        users = []
        for user_id in sorted(self.redis_client.smembers(REDIS_USERS_INDEX_KEY)):
            if user_id == exclude_id:
                continue
            user = self.get_user(user_id)
            if user is None:
                continue
            if needle and needle not in (user.get("name") or "").lower() and needle not in (user.get("email") or "").lower():
                continue
            users.append(user)
        logger.debug(f"User search {needle!r} matched {len(users)} users")
        return users

    def user_exists(self, user_id: str) -> bool:
        return bool(self.redis_client.sismember(REDIS_USERS_INDEX_KEY, user_id))

    @staticmethod
    def public_user(document: dict) -> dict:
        return {
            "_id": document["_id"],
            "name": document.get("name"),
            "email": document.get("email"),
            "pic": document.get("pic"),
            "createdAt": document.get("created_at"),
            "updatedAt": document.get("updated_at"),
        }

    def _populate_users(self, user_ids: Iterable[str]) -> List[dict]:
        users = []
        for user_id in user_ids:
            user = self.get_user(user_id)
            if user is not None:
                users.append(user)
        return users

    # -- chats ---------------------------------------------------------

    def _chat_key(self, chat_id: str) -> str:
        return REDIS_CHAT_KEY.format(chat_id=chat_id)

    def get_chat_document(self, chat_id: str) -> Optional[dict]:
        document = self._load(self._chat_key(chat_id))
        if document is not None:
            document["_id"] = chat_id
        return document

    def get_chat(self, chat_id: str) -> Optional[dict]:
        document = self.get_chat_document(chat_id)
        return self._chat_view(document) if document else None

    def _create_chat(self, chat_name: str, users: List[str], is_group_chat: bool, group_admin: Optional[str]) -> str:
        chat_id = uuid.uuid4().hex
        now = datetime.now()
        self._save(self._chat_key(chat_id), {
            "chat_name": chat_name,
            "is_group_chat": is_group_chat,
            "users": users,
            "group_admin": group_admin,
            "latest_message": None,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        })
        for user_id in users:
            self.redis_client.zadd(REDIS_USER_CHATS_KEY.format(user_id=user_id), {chat_id: now.timestamp()})
        logger.info(f"Created {'group' if is_group_chat else 'one-on-one'} chat {chat_id} with {len(users)} users")
        return chat_id

    def _touch_chat(self, chat_id: str, users: Iterable[str], **fields):
        now = datetime.now()
        fields["updated_at"] = now.isoformat()
        self._save(self._chat_key(chat_id), fields)
        for user_id in users:
            self.redis_client.zadd(REDIS_USER_CHATS_KEY.format(user_id=user_id), {chat_id: now.timestamp()})

    def access_chat(self, user_id: str, other_user_id: str) -> dict:
        """Fetch the one-on-one chat between two users, creating it on first access."""
        first, second = sorted((user_id, other_user_id))
        direct_key = REDIS_DIRECT_CHAT_KEY.format(pair=json.dumps([first, second]))
        chat_id = self.redis_client.get(direct_key)
        if chat_id and self.redis_client.exists(self._chat_key(chat_id)):
            logger.debug(f"Found existing chat {chat_id} between {user_id} and {other_user_id}")
            return self.get_chat(chat_id)
        chat_id = self._create_chat("sender", [user_id, other_user_id], False, None)
        self.redis_client.set(direct_key, chat_id)
        return self.get_chat(chat_id)

    def list_chats(self, user_id: str) -> List[dict]:
        """All chats of a user, most recently active first."""
        chats = []
        for chat_id in self.redis_client.zrevrange(REDIS_USER_CHATS_KEY.format(user_id=user_id), 0, -1):
            chat = self.get_chat(chat_id)
            if chat is not None:
                chats.append(chat)
        return chats

    def create_group_chat(self, name: str, users: List[str], admin_id: str) -> dict:
        members = [u for u in dict.fromkeys(users) if u != admin_id] + [admin_id]
        chat_id = self._create_chat(name, members, True, admin_id)
        return self.get_chat(chat_id)

    def rename_chat(self, chat_id: str, chat_name: str) -> Optional[dict]:
        document = self.get_chat_document(chat_id)
        if document is None:
            return None
        self._touch_chat(chat_id, document["users"], chat_name=chat_name)
        return self.get_chat(chat_id)

    def add_to_group(self, chat_id: str, user_id: str) -> Optional[dict]:
        document = self.get_chat_document(chat_id)
        if document is None:
            return None
        users = document["users"]
        if user_id not in users:
            users.append(user_id)
        self._touch_chat(chat_id, users, users=users)
        return self.get_chat(chat_id)

    def remove_from_group(self, chat_id: str, user_id: str) -> Optional[dict]:
        document = self.get_chat_document(chat_id)
        if document is None:
            return None
        users = [u for u in document["users"] if u != user_id]
        self._touch_chat(chat_id, users, users=users)
        self.redis_client.zrem(REDIS_USER_CHATS_KEY.format(user_id=user_id), chat_id)
        return self.get_chat(chat_id)

    def delete_chat(self, chat_id: str) -> int:
        """Delete a chat and all of its messages. Returns the number of messages removed."""
        document = self.get_chat_document(chat_id)
        if document is None:
            return 0
        messages_key = REDIS_CHAT_MESSAGES_KEY.format(chat_id=chat_id)
        message_ids = self.redis_client.lrange(messages_key, 0, -1)
        pipe = self.redis_client.pipeline()
        for message_id in message_ids:
            pipe.delete(REDIS_MESSAGE_KEY.format(message_id=message_id))
        pipe.delete(messages_key)
        pipe.delete(self._chat_key(chat_id))
        for user_id in document["users"]:
            pipe.zrem(REDIS_USER_CHATS_KEY.format(user_id=user_id), chat_id)
        pipe.execute()
        logger.info(f"Deleted chat {chat_id} and {len(message_ids)} messages")
        return len(message_ids)

    def _chat_view(self, document: dict) -> dict:
        latest = None
        if document.get("latest_message"):
            latest = self.get_message(document["latest_message"], populate_chat=False)
        admin = self.get_user(document["group_admin"]) if document.get("group_admin") else None
        return {
            "_id": document["_id"],
            "chatName": document.get("chat_name"),
            "isGroupChat": bool(document.get("is_group_chat")),
            "users": self._populate_users(document.get("users", [])),
            "groupAdmin": admin,
            "latestMessage": latest,
            "createdAt": document.get("created_at"),
            "updatedAt": document.get("updated_at"),
        }

    # -- messages ------------------------------------------------------

    def create_message(self, sender_id: str, chat_id: str, content: str) -> Optional[dict]:
        document = self.get_chat_document(chat_id)
        if document is None:
            return None
        message_id = uuid.uuid4().hex
        now = datetime.now().isoformat()
        self._save(REDIS_MESSAGE_KEY.format(message_id=message_id), {
            "sender": sender_id,
            "content": content,
            "chat": chat_id,
            "read_by": [],
            "created_at": now,
            "updated_at": now,
        })
        self.redis_client.rpush(REDIS_CHAT_MESSAGES_KEY.format(chat_id=chat_id), message_id)
        self._touch_chat(chat_id, document["users"], latest_message=message_id)
        logger.debug(f"Stored message {message_id} in chat {chat_id}")
        return self.get_message(message_id)

    def get_message(self, message_id: str, populate_chat: bool = True) -> Optional[dict]:
        document = self._load(REDIS_MESSAGE_KEY.format(message_id=message_id))
        if document is None:
            return None
        sender = self.get_user(document["sender"])
        if sender is not None:
            sender = {k: sender.get(k) for k in SENDER_FIELDS}
        chat = document["chat"]
        if populate_chat:
            chat = self.get_chat(chat) or chat
        return {
            "_id": message_id,
            "sender": sender,
            "content": document.get("content"),
            "chat": chat,
            "readBy": document.get("read_by", []),
            "createdAt": document.get("created_at"),
            "updatedAt": document.get("updated_at"),
        }

    def list_messages(self, chat_id: str) -> List[dict]:
        chat = self.get_chat(chat_id)
        messages = []
        for message_id in self.redis_client.lrange(REDIS_CHAT_MESSAGES_KEY.format(chat_id=chat_id), 0, -1):
            message = self.get_message(message_id, populate_chat=False)
            if message is not None:
                message["chat"] = chat
                messages.append(message)
        return messages

    def mark_messages_read(self, chat_id: str, user_id: str) -> int:
        """Add `user_id` to readBy on every message of the chat. Returns how many changed."""
        updated = 0
        for message_id in self.redis_client.lrange(REDIS_CHAT_MESSAGES_KEY.format(chat_id=chat_id), 0, -1):
            key = REDIS_MESSAGE_KEY.format(message_id=message_id)
            document = self._load(key)
            if document is None or user_id in document.get("read_by", []):
                continue
            self._save(key, {"read_by": document.get("read_by", []) + [user_id]})
            updated += 1
        logger.debug(f"Marked {updated} messages in chat {chat_id} as read by {user_id}")
        return updated


redis_backend = RedisBackend()


def get_backend() -> RedisBackend:
    return redis_backend
