from shared.config import BaseServiceConfig


class Settings(BaseServiceConfig):
    # Report calendar. One timezone decides the report day, the storage date
    # key, the backend query window and the header display time.
    report_timezone: str = "Asia/Shanghai"
    report_display_timezone: str = "Asia/Shanghai"

    # Snapshot storage (S3)
    snapshot_bucket: str = "govee-logs"
    snapshot_prefix: str = "iotcore-logs/"
    snapshot_put_retries: int = 3
    snapshot_put_base_delay_seconds: float = 0.5
    snapshot_history_days: int = 7

    # CloudWatch
    cloudwatch_namespace: str = "AWS/IoT"
    cloudwatch_daily_period_seconds: int = 86400
    cloudwatch_page_period_seconds: int = 3600
    cloudwatch_page_delay_seconds: float = 0.1
    cloudwatch_max_pages: int = 100

    # Redshift Data API
    redshift_cluster: str = "pro-redshift-cluster-1"
    redshift_database: str = "pro"
    redshift_db_user: str = "awsuser"
    query_poll_interval_seconds: float = 1.0
    query_max_attempts: int = 60  # ~60s per query

    # Report plans: snapshot leaf (camelCase dotted path) -> SQL / metric name
    thing_queries: dict[str, str] = {
        "accountThingCount": "SELECT COUNT(*) FROM device.account",
        "deviceTableCount": (
            "SELECT COUNT(*) FROM device.device WHERE account_id != 0 AND topic != '' "
            "AND (type IN ('LT_WF', 'BM') OR sku IN ('H5151', 'H5041', 'H5043', "
            "'H5042', 'H5044', 'H5106', 'H5140'))"
        ),
        "gatewayThingCount": (
            "SELECT COUNT(*) FROM device.gateway WHERE account_id != 0 AND topic != ''"
        ),
    }
    message_metrics: dict[str, str] = {
        "inbound.success": "PublishIn.Success",
        "inbound.clientError": "PublishIn.ClientError",
        "inbound.serverError": "PublishIn.ServerError",
        "outbound.success": "PublishOut.Success",
        "outbound.clientError": "PublishOut.ClientError",
        "outbound.serverError": "PublishOut.ServerError",
        "connections.success": "Connect.Success",
        "connections.clientError": "Connect.ClientError",
        "connections.serverError": "Connect.ServerError",
        "connections.disconnects": "Disconnect.Success",
        "subscriptions.subscribe": "Subscribe.Success",
        "subscriptions.unsubscribe": "Unsubscribe.Success",
    }
    error_metrics: dict[str, str] = {
        "connectionErrors.authError": "Connect.AuthError",
        "connectionErrors.clientError": "Connect.ClientError",
        "connectionErrors.serverError": "Connect.ServerError",
        "connectionErrors.throttle": "Connect.Throttle",
        "publishInErrors.authError": "PublishIn.AuthError",
        "publishInErrors.clientError": "PublishIn.ClientError",
        "publishInErrors.serverError": "PublishIn.ServerError",
        "publishOutErrors.authError": "PublishOut.AuthError",
        "publishOutErrors.clientError": "PublishOut.ClientError",
        "publishOutErrors.serverError": "PublishOut.ServerError",
        "subscribeErrors.authError": "Subscribe.AuthError",
        "subscribeErrors.clientError": "Subscribe.ClientError",
        "subscribeErrors.serverError": "Subscribe.ServerError",
        "subscribeErrors.throttle": "Subscribe.Throttle",
    }

    # Contributor Insights
    contributor_top_n: int = 10
    contributor_min_period_seconds: int = 3600
    contributor_max_period_seconds: int = 86400
    duplicate_app_rule: str = "iot-duplicateclientid-account"
    duplicate_device_rule: str = "iot-duplicateclientid-device"

    # Rendering
    display_top_n: int = 5
    display_id_width: int = 32
    # Ascending ladder for total error counts: value >= threshold takes the label
    error_severity_thresholds: dict[str, int] = {
        "attention": 1_000,
        "warning": 10_000,
        "critical": 50_000,
    }

    # Comparison. Only window-scoped reports can be re-aggregated for a past
    # day; thing counts are point-in-time table sizes.
    comparison_live_fallback: bool = True
    live_fallback_report_types: list[str] = ["message-statistic", "error-statistic"]

    otel_service_name: str = "reporting"


settings = Settings()
