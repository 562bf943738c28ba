from qrhunt.services.event_bus import EventBus, EventChannel, Event, Subscription, Listener
from qrhunt.services.presence_tracker import PresenceTracker
from qrhunt.services.graph_store import GraphStore
from qrhunt.services.leaderboard_ranker import TeamSnapshot, RankedEntry, rank
from qrhunt.services.leaderboard_service import LeaderboardService
from qrhunt.services.scan_service import ScanService
from qrhunt.services.lifecycle_service import GameLifecycleService
from qrhunt.services.team_service import TeamService
from qrhunt.services.chat_service import ChatService
