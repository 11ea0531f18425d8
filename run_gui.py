import sys
import argparse
from PySide6.QtWidgets import QApplication
from code_stream.core.logging_config import setup_logging
from code_stream.gui.sender_app import SenderApp
from code_stream.gui.receiver_app import ReceiverApp

def main():
    parser = argparse.ArgumentParser()
    parser.add_argument('mode', choices=['sender', 'receiver'], help='Mode to run')
    parser.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING or ERROR')
    args = parser.parse_args()
    setup_logging(log_level=args.log_level)

    app = QApplication(sys.argv)
    
    if args.mode == 'sender':
        window = SenderApp()
    else:
        window = ReceiverApp()
        
    window.show()
    sys.exit(app.exec())

if __name__ == '__main__':
    main()
