# gevent monkey-patching has to land before httpx pulls in ssl
import locust  # noqa: F401
