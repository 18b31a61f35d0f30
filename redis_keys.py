# Every document kind has its own sub-namespace so an id can never resolve to an index key
REDIS_USER_KEY = "user:doc:{user_id}" # user id - user document hash
REDIS_USER_EMAIL_KEY = "user:email:{email}" # lowercased email -> user id
REDIS_USERS_INDEX_KEY = "users:all" # set of every user id
REDIS_USER_CHATS_KEY = "user:chats:{user_id}" # zset of chat ids scored by last activity
REDIS_CHAT_KEY = "chat:doc:{chat_id}" # chat id - chat document hash
REDIS_DIRECT_CHAT_KEY = "chat:direct:{pair}" # JSON encoded sorted user id pair -> one-on-one chat id
REDIS_CHAT_MESSAGES_KEY = "chat:messages:{chat_id}" # list of message ids, oldest first
REDIS_MESSAGE_KEY = "message:doc:{message_id}" # message id - message document hash

# **Example `chat:doc:{id}` hash fields** (every value JSON encoded)
# - `chat_name` = "sender" for one-on-one chats, group name otherwise
# - `is_group_chat` = true / false
# - `users` = list of user ids
# - `group_admin` = user id or null
# - `latest_message` = message id or null
# - `created_at` / `updated_at` = ISO timestamps
