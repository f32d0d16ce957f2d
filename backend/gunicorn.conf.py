# Entry point: gunicorn -c gunicorn.conf.py "beacon_auth:create_app()"
wsgi_app = "beacon_auth:create_app()"

# Bind & workers
bind = "0.0.0.0:8000"
workers = 2  # override with env GUNICORN_WORKERS
threads = 1
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by the container runtime)
accesslog = "-"
errorlog = "-"
loglevel = "info"  # override with env LOG_LEVEL

# Trust proxy headers from the load balancer
forwarded_allow_ips = "*"
proxy_protocol = False
