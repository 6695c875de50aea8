import logging

LOG_FORMAT = '[%(asctime)s] %(levelname)s: %(message)s'


def configure_logging(app):
    """控制台输出 + 可选文件输出（LOG_FILE）"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [logging.StreamHandler()]
    log_file = app.config.get('LOG_FILE')
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    root.setLevel(level)
    # 重复 create_app（如测试）时不重复添加 handler
    for handler in list(root.handlers):
        if getattr(handler, '_mining_handler', False):
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._mining_handler = True
        root.addHandler(handler)

    app.logger.setLevel(level)
