from flask import Flask, jsonify, current_app
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from werkzeug.exceptions import InternalServerError
from extensions import db, init_redis
from dotenv import load_dotenv
import os

# 提前导入模型注册函数（明确显示依赖关系）
from models import register_models

from blueprints.mining import mining_bp
from utils.claim_service import MiningService
from utils.identity import IdentityCache, RemoteIdentityResolver, TokenIdentityResolver
from utils.log_utils import configure_logging
from utils.mining_config import MiningSettings, env_config

load_dotenv()


def build_identity_resolver(config):
    secret = config['ACCESS_TOKEN_SECRET']
    endpoint = config.get('CHECK_AUTH_SERVICE_ENDPOINT')
    if not endpoint:
        return TokenIdentityResolver(secret)

    cache = None
    redis_conn = init_redis(config.get('REDIS_URL'))
    if redis_conn is not None:
        cache = IdentityCache(redis_conn, ttl=int(config['IDENTITY_CACHE_TTL']))
    return RemoteIdentityResolver(endpoint, secret, cache=cache, timeout=float(config['AUTH_SERVICE_TIMEOUT']))


def create_app(test_config=None, identity_resolver=None):
    app = Flask(__name__)

    CORS(app, supports_credentials=True)

    # ===== 配置 =====
    app.config.update(
        ACCESS_TOKEN_SECRET=os.getenv('ACCESS_TOKEN_SECRET'),
        CHECK_AUTH_SERVICE_ENDPOINT=os.getenv('CHECK_AUTH_SERVICE_ENDPOINT'),
        AUTH_SERVICE_TIMEOUT=os.getenv('AUTH_SERVICE_TIMEOUT', '5'),
        REDIS_URL=os.getenv('REDIS_URL'),
        IDENTITY_CACHE_TTL=os.getenv('IDENTITY_CACHE_TTL', '100'),
        LOG_LEVEL=os.getenv('LOG_LEVEL', 'INFO'),
        LOG_FILE=os.getenv('LOG_FILE'),
        SQLALCHEMY_DATABASE_URI=os.getenv('DB_URI', 'sqlite:///mining.db'),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        **env_config()
    )
    if test_config:
        app.config.update(test_config)

    if not app.config['ACCESS_TOKEN_SECRET']:
        raise ValueError('ACCESS_TOKEN_SECRET is required')

    configure_logging(app)

    # ===== 初始化扩展 =====
    db.init_app(app)
    Migrate(app, db)

    with app.app_context():
        register_models()
        session_factory = sessionmaker(bind=db.engine, expire_on_commit=False)

    # 核心服务与身份解析以依赖注入方式挂到 app.extensions
    app.extensions['mining_service'] = MiningService(session_factory, MiningSettings.from_config(app.config))
    app.extensions['identity_resolver'] = identity_resolver or build_identity_resolver(app.config)

    app.register_blueprint(mining_bp)

    @app.errorhandler(InternalServerError)
    def handle_internal_error(e):
        # Flask 已记录异常堆栈，这里只返回通用错误
        return jsonify({'message': 'Internal Server Error'}), 500

    # 健康检查
    @app.route('/health')
    def health_check():
        try:
            with db.engine.connect() as conn:
                conn.execute(text('SELECT 1'))
        except SQLAlchemyError as e:
            current_app.logger.error(f'Health check failed: {e}')
            return jsonify({'status': 'unhealthy', 'message': 'Database connection failed'}), 500
        return jsonify({'status': 'healthy'})

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.getenv('APP_PORT', '8080')))
