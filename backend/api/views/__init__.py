from api.views.leaderboard_handlers import leaderboards as leaderboards
from api.views.record_handlers import (
    best_entries as best_entries,
)
from api.views.record_handlers import (
    create_user as create_user,
)
from api.views.record_handlers import (
    delete_best_entry as delete_best_entry,
)
from api.views.record_handlers import (
    delete_play as delete_play,
)
from api.views.record_handlers import (
    get_play as get_play,
)
from api.views.record_handlers import (
    list_plays as list_plays,
)
from api.views.record_handlers import (
    tenth_best as tenth_best,
)
from api.views.record_handlers import (
    user_stats as user_stats,
)
from api.views.session_handlers import end_session as end_session
from api.views.session_handlers import start_session as start_session
