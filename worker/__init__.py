"""
Crawl and extract pipelines for the classifieds crawler.

- `worker.sessions` / `worker.crawl_pool` / `worker.jobs`: crawl a session's job queue
- `worker.extract_pool` / `worker.extract`: turn stored item pages into classifieds
- `worker.main`: the `classifieds` command-line entrypoint
"""
