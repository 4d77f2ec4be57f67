"""SQS-triggered Lambda workers."""
