from app.monitor_service import main

main()
