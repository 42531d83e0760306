"""
CLI интерфейс для сервиса сертификатов
"""
import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

import httpx

from certchain.generator import compute_certificate_hash
from config.settings import get_settings


class CertificateCLI:
    """CLI интерфейс для работы с сертификатами"""

    def __init__(self, api_url: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.settings = get_settings()
        self.api_url = (api_url or f"http://localhost:{self.settings.port}").rstrip("/")
        self.client = client
        self.setup_logging()

    def setup_logging(self):
        """Настройка логирования"""
        self.settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(
            level=getattr(logging, self.settings.log_level),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(self.settings.log_file),
                logging.StreamHandler()
            ]
        )
        self.logger = logging.getLogger(__name__)

    def _client(self) -> httpx.Client:
        if self.client is None:
            self.client = httpx.Client(base_url=self.api_url, timeout=10.0)
        return self.client

    def serve(self, args):
        """Запуск API сервера"""
        import uvicorn

        self.logger.info(f"Запуск API сервера на {args.host}:{args.port}")
        uvicorn.run("api_server:app", host=args.host, port=args.port, reload=args.reload)

    def compute_hash(self, args):
        """Вычисление хеша сертификата по его содержимому"""
        try:
            completion_date = date.fromisoformat(args.date)
        except ValueError:
            print(f"✗ Неверный формат даты: {args.date} (ожидается YYYY-MM-DD)")
            sys.exit(1)

        certificate_hash = compute_certificate_hash(
            args.student,
            args.course,
            completion_date,
            args.issuer,
            args.organization,
        )
        print(certificate_hash)
        return certificate_hash

    def _post(self, path: str, payload: dict, error_context: str) -> dict:
        """POST запрос к API, при любой ошибке печатает сообщение и завершает работу"""
        try:
            response = self._client().post(path, json=payload)
        except httpx.HTTPError as e:
            print(f"✗ Ошибка подключения к API: {e}")
            self.logger.error(f"{error_context}: {e}")
            sys.exit(1)

        try:
            data = response.json()
        except ValueError:
            print(f"✗ Некорректный ответ API (HTTP {response.status_code})")
            self.logger.error(f"{error_context}: ответ не в формате JSON, HTTP {response.status_code}")
            sys.exit(1)

        if response.status_code != 200:
            print(f"✗ Ошибка: {data.get('error', {}).get('message', response.status_code)}")
            sys.exit(1)
        return data

    def verify_certificate(self, args):
        """Проверка сертификата через API"""
        data = self._post(
            "/verification/verify",
            {"certificateId": args.certificate_id},
            f"Ошибка запроса проверки {args.certificate_id}",
        )

        verification = data["verification"]
        self._print_verification(args.certificate_id, verification)
        self.logger.info(f"Проверен сертификат {args.certificate_id}: {verification['isValid']}")
        return verification

    def bulk_verify(self, args):
        """Пакетная проверка сертификатов через API"""
        data = self._post(
            "/verification/bulk-verify", {"certificateIds": args.certificate_ids}, "Ошибка пакетной проверки"
        )

        for result in data["results"]:
            self._print_verification(result["certificateId"], result)

        summary = data["summary"]
        print(f"Итого: {summary['total']}, действительных: {summary['valid']}, "
              f"недействительных: {summary['invalid']}")
        return data

    @staticmethod
    def _print_verification(certificate_id: str, verification: dict):
        mark = "✓" if verification["isValid"] else "✗"
        print(f"{mark} {certificate_id}: {verification['message']}")

        certificate = verification.get("certificate")
        if certificate:
            print(f"  Студент: {certificate['studentName']}")
            print(f"  Курс: {certificate['courseName']}")
            print(f"  Статус: {certificate['status']}")

    def main(self, argv: Optional[List[str]] = None):
        """Главная функция CLI"""
        parser = argparse.ArgumentParser(
            description="Выдача и проверка сертификатов",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Примеры использования:
  %(prog)s serve --port 8000
  %(prog)s hash --student "Jane Doe" --course Algorithms --date 2024-01-01 --issuer "Tech U" --organization Org
  %(prog)s verify CERT123456AB12CD34
  %(prog)s bulk-verify CERT123456AB12CD34 CERT654321ZX98YW76
            """
        )
        parser.add_argument('--api-url', help='Адрес API сервера')

        subparsers = parser.add_subparsers(dest='command', help='Доступные команды')

        serve_parser = subparsers.add_parser('serve', help='Запуск API сервера')
        serve_parser.add_argument('--host', default=self.settings.host, help='Хост')
        serve_parser.add_argument('--port', type=int, default=self.settings.port, help='Порт')
        serve_parser.add_argument('--reload', action='store_true', help='Перезапуск при изменении кода')

        hash_parser = subparsers.add_parser('hash', help='Вычисление хеша сертификата')
        hash_parser.add_argument('--student', required=True, help='Имя студента')
        hash_parser.add_argument('--course', required=True, help='Название курса')
        hash_parser.add_argument('--date', required=True, help='Дата завершения (YYYY-MM-DD)')
        hash_parser.add_argument('--issuer', required=True, help='Имя выдавшего лица')
        hash_parser.add_argument('--organization', required=True, help='Организация')

        verify_parser = subparsers.add_parser('verify', help='Проверка сертификата')
        verify_parser.add_argument('certificate_id', help='ID сертификата для проверки')

        bulk_parser = subparsers.add_parser('bulk-verify', help='Пакетная проверка сертификатов')
        bulk_parser.add_argument('certificate_ids', nargs='+', help='ID сертификатов')

        args = parser.parse_args(argv)

        if args.api_url:
            self.api_url = args.api_url.rstrip("/")

        if not args.command:
            parser.print_help()
            return None

        if args.command == 'serve':
            return self.serve(args)
        elif args.command == 'hash':
            return self.compute_hash(args)
        elif args.command == 'verify':
            return self.verify_certificate(args)
        elif args.command == 'bulk-verify':
            return self.bulk_verify(args)


def main():
    """Точка входа консольной команды"""
    cli = CertificateCLI()
    cli.main()


if __name__ == '__main__':
    main()
