from redis_shard_stats.cli import main


main(prog_name="redis-shard-stats")
