from src.analytics.queries import DatasetQueryClient
from src.analytics.service import AnalyticsService
